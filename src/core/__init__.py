"""
Core business logic for physiognomy scans.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or the Anthropic SDK. The reading and orchestration logic can be tested
with plain fakes.
"""
