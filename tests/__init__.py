"""
Keg Test Suite

- Unit tests for formulas, checksums, downloads and installs
- Pipeline tests for KegCore with a mocked HTTP transport
- CLI tests through typer's CliRunner
"""
