"""netcup-acme internal implementation."""
