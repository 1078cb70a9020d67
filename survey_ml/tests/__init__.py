"""Test suite for the Survey ML Features service."""
