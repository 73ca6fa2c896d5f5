from gradientpm.hooks import build_hook_command, run_script


def _write_script(tmp_path, body):
    script = tmp_path / "demo.anemonix"
    script.write_text(body)
    return script


def test_runs_common_then_named_hook(tmp_path):
    out = tmp_path / "out.txt"
    script = _write_script(
        tmp_path,
        f"post_common() {{ echo common >> '{out}'; }}\n"
        f"post_install() {{ echo install >> '{out}'; }}\n",
    )
    assert run_script(script, "post_install") == 0
    assert out.read_text() == "common\ninstall\n"


def test_undefined_hook_is_skipped(tmp_path):
    out = tmp_path / "out.txt"
    script = _write_script(tmp_path, f"post_common() {{ echo common >> '{out}'; }}\n")
    assert run_script(script, "post_remove") == 0
    assert out.read_text() == "common\n"


def test_failing_hook_reports_status(tmp_path):
    script = _write_script(tmp_path, "post_install() { exit 3; }\n")
    assert run_script(script, "post_install") == 3


def test_missing_script_is_skipped(tmp_path):
    assert run_script(tmp_path / "absent.anemonix", "post_install") is None


def test_command_without_chroot():
    cmd = build_hook_command("/var/lib/gradient/scripts/a.anemonix", "post_install", "/")
    assert cmd[:3] == ["/bin/sh", "-e", "-c"]
    assert "/var/lib/gradient/scripts/a.anemonix" in cmd[3]


def test_command_with_chroot_strips_prefix():
    cmd = build_hook_command(
        "/mnt/root/var/lib/gradient/scripts/a.anemonix", "post_install", "/mnt/root"
    )
    assert cmd[:2] == ["chroot", "/mnt/root"]
    assert "/var/lib/gradient/scripts/a.anemonix" in cmd[-1]
    assert "/mnt/root/var" not in cmd[-1]
    assert "post_install" in cmd[-1]