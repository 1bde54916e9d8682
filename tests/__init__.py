"""
Test suite for ADIS

Unit tests per module (canonical encoding, format handlers, lineage, ledger
gateways, verification, issuance), API tests through the FastAPI TestClient,
and CLI tests through click's CliRunner.
"""
