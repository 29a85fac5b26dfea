"""
devusers Test Suite

- Validation, settings and model tests
- Provisioner create/remove tests against in-memory fakes
- Host capability tests with a canned command runner
- CLI tests through Typer's CliRunner
"""
