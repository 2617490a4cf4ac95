from __future__ import annotations

from pathlib import Path

import pytest

from prescribing_pipeline.config import get_settings
from prescribing_pipeline.errors import ConfigError


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STORE_DIR", str(tmp_path / "store"))
    monkeypatch.setenv("SHARD_CAPACITY", "250")
    monkeypatch.setenv("ORG_FILE_URL", " ")
    s = get_settings()

    assert s.shard_capacity == 250
    assert s.org_file_url is None
    assert s.shard_dir == tmp_path / "store" / "transactions"
    assert s.organizations_path.name == "organizations.bson"
    assert s.report_path.name == "avg-price.txt"


@pytest.mark.parametrize("value", ["0", "-3", "lots"])
def test_invalid_shard_capacity(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("SHARD_CAPACITY", value)
    with pytest.raises(ConfigError):
        get_settings()
