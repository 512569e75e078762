from __future__ import annotations

from bazaar.__main__ import build_parser, main


def test_parser_defaults() -> None:
    args = build_parser().parse_args(["race"])

    assert (args.command, args.buyers, args.stock, args.storage) == ("race", 5, 1, "memory")


def test_methods_command(capsys) -> None:
    main(["methods"])

    out = capsys.readouterr().out
    assert "GCash" in out
    assert "bank_transfer" in out


def test_race_command_sells_the_last_unit_once(capsys) -> None:
    main(["--latency", "0.01", "race", "--buyers", "4", "--stock", "1"])

    out = capsys.readouterr().out
    assert out.count("✓ ord_") == 1
    assert out.count("INVENTORY_RACE_LOST") == 3
    assert "Final stock: 0" in out
    assert "Open refunds: 0" in out


def test_checkout_command_with_cancel(capsys) -> None:
    main(["--latency", "0", "checkout", "--quantity", "2", "--stock", "5", "--cancel"])

    out = capsys.readouterr().out
    assert "pending" in out
    assert "cancelled" in out
    assert "Stock now: 5" in out
