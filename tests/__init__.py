"""
Test suite for the DoctorGo API.

Contains unit and integration tests for the services and HTTP endpoints.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
