"""netcup-acme tests."""
