from __future__ import annotations

import webbrowser
from typing import TYPE_CHECKING

import pytest

from entitlekit.ui import cli

if TYPE_CHECKING:
    from pathlib import Path

MANIFEST = """
[products."com.example.pro.monthly"]
title = "Pro (monthly)"
tier = "pro"
"""


@pytest.fixture
def manifest_path(tmp_path: Path) -> Path:
    path = tmp_path / "products.toml"
    path.write_text(MANIFEST)
    return path


@pytest.fixture(autouse=True)
def no_browser(monkeypatch: pytest.MonkeyPatch) -> None:
    def unavailable(using: str | None = None) -> webbrowser.BaseBrowser:
        raise webbrowser.Error("no browser in tests")

    monkeypatch.setattr(webbrowser, "get", unavailable)
    monkeypatch.delenv("ENTITLEKIT_POLL_INTERVAL", raising=False)


def _main(*argv: str) -> int:
    with pytest.raises(SystemExit) as exc:
        cli.main(list(argv))
    code = exc.value.code
    return code if isinstance(code, int) else 1


def test_status_prints_mock_subscription(
    manifest_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = _main("--provider", "mock", "--manifest", str(manifest_path), "status")

    assert code == 0
    assert "Subscription status: active(" in capsys.readouterr().out


def test_status_watch_prints_current_value(
    manifest_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = _main(
        "--provider", "mock", "--manifest", str(manifest_path), "status", "--watch", "0.05"
    )

    assert code == 0
    assert capsys.readouterr().out.count("Subscription status: active(") == 1


def test_products_lists_prices(manifest_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = _main("--provider", "mock", "--manifest", str(manifest_path), "products")

    out = capsys.readouterr().out
    assert code == 0
    assert "com.example.pro.monthly\tPro (monthly)\t$4.99\tmonth\tPRO" in out


def test_purchase_of_configured_product(
    manifest_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = _main(
        "--provider",
        "mock",
        "--manifest",
        str(manifest_path),
        "purchase",
        "com.example.pro.monthly",
    )

    assert code == 0
    assert "Purchased com.example.pro.monthly" in capsys.readouterr().out


def test_purchase_of_unknown_product_exits_with_error(manifest_path: Path) -> None:
    code = _main("--provider", "mock", "--manifest", str(manifest_path), "purchase", "nope")

    assert code == 1


def test_restore_and_manage_succeed(manifest_path: Path) -> None:
    assert _main("--provider", "mock", "--manifest", str(manifest_path), "restore") == 0
    assert _main("--provider", "mock", "--manifest", str(manifest_path), "manage") == 0


def test_missing_manifest_is_a_configuration_error(tmp_path: Path) -> None:
    code = _main("--provider", "mock", "--manifest", str(tmp_path / "absent.toml"), "status")

    assert code == 2


def test_invalid_arguments_exit_with_usage_error() -> None:
    assert _main("status", "--watch", "-1") == 2
    assert _main("--provider", "elsewhere", "status") == 2
