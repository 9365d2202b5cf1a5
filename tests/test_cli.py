import pytest

from core import otp_cli

from conftest import RFC_SECRET_B32


@pytest.fixture()
def run(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(otp_cli.Config, "ENCRYPTION_KEY", "cli-test-key")
    database = str(tmp_path / "cli.db")

    def _run(*argv):
        status = otp_cli.main(["--database", database, *argv])
        out, err = capsys.readouterr()
        return status, out, err

    return _run


def test_add_list_code_delete(run):
    assert run("add", "h", "--secret", RFC_SECRET_B32, "--type", "hotp", "--encrypt")[0] == 0

    status, out, _ = run("list")
    assert status == 0
    assert "h" in out and "[encrypted]" in out

    status, out, _ = run("code", "h")
    assert out.startswith("755224")
    _, out, _ = run("code", "h")
    assert out.startswith("287082")

    assert run("delete", "h")[0] == 0
    status, _, err = run("code", "h")
    assert status == 1
    assert "AccountNotFound" in err


def test_add_generates_secret(run):
    status, out, _ = run("add", "generated")
    assert status == 0
    assert "Generated secret" in out


def test_import_and_uri(run):
    status, out, _ = run("import", "otpauth://totp/ACME:carol?secret=JBSWY3DPEHPK3PXP")
    assert status == 0
    assert "acme-carol" in out
    _, out, _ = run("uri", "acme-carol", "--issuer", "ACME")
    assert out.startswith("otpauth://totp/ACME:")


def test_duplicate_reports_kind(run):
    run("add", "a", "--secret", RFC_SECRET_B32)
    status, _, err = run("add", "a", "--secret", RFC_SECRET_B32)
    assert status == 1
    assert "DuplicateKey" in err


def test_codes(run):
    run("add", "a", "--secret", RFC_SECRET_B32)
    run("add", "h", "--secret", RFC_SECRET_B32, "--type", "hotp")
    status, out, _ = run("codes")
    assert status == 0
    assert "hotp, counter 0" in out


def test_no_command_prints_help(run):
    status, out, _ = run()
    assert status == 1
    assert "usage" in out
