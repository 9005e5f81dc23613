"""Tests for the crmsync CLI."""

from __future__ import annotations

from typer.testing import CliRunner

from crmsync.cli import app
from crmsync.config import settings

runner = CliRunner()


def test_process_queue_requires_remote(monkeypatch):
    monkeypatch.setattr(settings, "instance_url", "")
    monkeypatch.setattr(settings, "access_token", "")
    result = runner.invoke(app, ["process-queue"])
    assert result.exit_code == 1
    assert "not configured" in result.output


def test_sync_all_requires_remote(monkeypatch):
    monkeypatch.setattr(settings, "instance_url", "")
    monkeypatch.setattr(settings, "access_token", "")
    result = runner.invoke(app, ["sync-all", "--kind", "Contact"])
    assert result.exit_code == 1
