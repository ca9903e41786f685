"""Kinesis clients: stream provisioning and record writing."""
