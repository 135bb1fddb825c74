import os
import subprocess
import tempfile
import unittest
import urllib.error
from unittest import mock

import part2_helpers
from part0_platform import PlatformFamily, PlatformInfo
from part1_bootstrap import (
    InstallFailedError, RefreshFailedError, PackageManagerInstallError,
    PackageManagerMissingError, ScriptDownloadError, ScriptExecutionError,
)

LINUX = PlatformInfo(PlatformFamily.LINUX, "ubuntu", "Ubuntu 22.04", kernel="Linux")
MACOS = PlatformInfo(PlatformFamily.MACOS, "macos", "macOS 14.2", kernel="Darwin")


def _fake_retrieve(content):
    def retrieve(url, dest):
        with open(dest, "w", encoding="utf-8") as f:
            f.write(content)
        return dest, None
    return retrieve


class TestPackageSet(unittest.TestCase):
    def test_linux_set(self):
        pkgs = part2_helpers.resolve_package_set(PlatformFamily.LINUX)
        self.assertEqual(pkgs[:5], ("make", "curl", "wget", "git", "llvm"))
        self.assertIn("build-essential", pkgs)
        self.assertIn("libssl-dev", pkgs)
        self.assertNotIn("openssl@3", pkgs)
        self.assertEqual(len(pkgs), 5 + 13)

    def test_macos_set(self):
        pkgs = part2_helpers.resolve_package_set(PlatformFamily.MACOS)
        self.assertEqual(pkgs[:5], part2_helpers.COMMON_PACKAGES)
        self.assertIn("openssl@3", pkgs)
        self.assertNotIn("build-essential", pkgs)

    def test_deterministic(self):
        self.assertEqual(part2_helpers.resolve_package_set(PlatformFamily.LINUX),
                         part2_helpers.resolve_package_set(PlatformFamily.LINUX))


class TestInstaller(unittest.TestCase):
    def test_linux_commands_use_sudo(self):
        with mock.patch("part2_helpers.run_with_live_output", return_value=(0, "")) as run:
            part2_helpers.update_packages(LINUX, ("sudo",))
            part2_helpers.install_packages(LINUX, ("make", "git"), ("sudo",))
        noninteractive = ["sudo", "env", "DEBIAN_FRONTEND=noninteractive"]
        self.assertEqual(run.call_args_list[0][0][0], noninteractive + ["apt-get", "update"])
        self.assertEqual(run.call_args_list[1][0][0],
                         noninteractive + ["apt-get", "install", "-y", "make", "git"])

    def test_apt_runs_noninteractive(self):
        with mock.patch.dict(os.environ, {"PATH": "/usr/bin:/bin"}), \
                mock.patch("part2_helpers.run_with_live_output", return_value=(0, "")) as run:
            part2_helpers.update_packages(LINUX, ())
            part2_helpers.install_packages(LINUX, ("tk-dev",), ())
        for c in run.call_args_list:
            self.assertEqual(c[0][0][0], "apt-get")
            self.assertEqual(c[1]["env"]["DEBIAN_FRONTEND"], "noninteractive")
            self.assertEqual(c[1]["env"]["PATH"], "/usr/bin:/bin")

    def test_brew_env_untouched(self):
        with mock.patch("part2_helpers.run_with_live_output", return_value=(0, "")) as run:
            part2_helpers.install_packages(MACOS, ("xz",), ())
        self.assertNotIn("DEBIAN_FRONTEND", run.call_args[1]["env"])

    def test_live_output_forwards_env_and_closes_stdin(self):
        proc = mock.Mock()
        proc.stdout.readline.return_value = ""
        proc.poll.return_value = 0
        proc.returncode = 0
        env = {"DEBIAN_FRONTEND": "noninteractive"}
        with mock.patch("part2_helpers.subprocess.Popen", return_value=proc) as popen:
            rc, _ = part2_helpers.run_with_live_output(["apt-get", "update"], "update", env=env)
        self.assertEqual(rc, 0)
        self.assertIs(popen.call_args[1]["env"], env)
        self.assertEqual(popen.call_args[1]["stdin"], subprocess.DEVNULL)

    def test_brew_never_uses_sudo(self):
        with mock.patch("part2_helpers.run_with_live_output", return_value=(0, "")) as run:
            part2_helpers.update_packages(MACOS, ("sudo",))
            part2_helpers.install_packages(MACOS, ("make",), ("sudo",))
        self.assertEqual(run.call_args_list[0][0][0], ["brew", "update"])
        self.assertEqual(run.call_args_list[1][0][0], ["brew", "install", "make"])

    def test_refresh_failure(self):
        with mock.patch("part2_helpers.run_with_live_output", return_value=(100, "E: lock")):
            with self.assertRaises(RefreshFailedError):
                part2_helpers.update_packages(LINUX, ("sudo",))

    def test_install_failure(self):
        with mock.patch("part2_helpers.run_with_live_output", return_value=(100, "E: Unable to locate package")):
            with self.assertRaises(InstallFailedError):
                part2_helpers.install_packages(LINUX, ("nope",), ())

    def test_empty_package_set(self):
        with mock.patch("part2_helpers.run_with_live_output") as run:
            with self.assertRaises(InstallFailedError):
                part2_helpers.install_packages(LINUX, (), ())
        run.assert_not_called()

    def test_live_output_missing_command(self):
        rc, out = part2_helpers.run_with_live_output(["devessential-no-such-binary"], "missing")
        self.assertEqual(rc, 127)
        self.assertIn("Command not found", out)


class TestRemoteInstaller(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.dest = os.path.join(self.tmp.name, "install.sh")

    def test_download_ok(self):
        with mock.patch("part2_helpers.urllib.request.urlretrieve", side_effect=_fake_retrieve("#!/bin/bash\n")):
            self.assertEqual(part2_helpers.download_script("https://x/install.sh", self.dest), self.dest)

    def test_download_network_error(self):
        err = urllib.error.URLError("no route")
        with mock.patch("part2_helpers.urllib.request.urlretrieve", side_effect=err):
            with self.assertRaises(ScriptDownloadError):
                part2_helpers.download_script("https://x/install.sh", self.dest)

    def test_download_empty(self):
        with mock.patch("part2_helpers.urllib.request.urlretrieve", side_effect=_fake_retrieve("")):
            with self.assertRaises(ScriptDownloadError):
                part2_helpers.download_script("https://x/install.sh", self.dest)

    def test_run_executes_downloaded_file(self):
        done = subprocess.CompletedProcess(args=[], returncode=0)
        with mock.patch("part2_helpers.urllib.request.urlretrieve", side_effect=_fake_retrieve("echo hi\n")), \
                mock.patch("part2_helpers.subprocess.run", return_value=done) as run:
            part2_helpers.run_remote_installer("https://x/install.sh", "Thing")
        cmd = run.call_args[0][0]
        self.assertEqual(cmd[0], "bash")
        self.assertTrue(cmd[1].endswith("install.sh"))
        # temporary directory is gone afterwards
        self.assertFalse(os.path.exists(cmd[1]))

    def test_run_failure(self):
        done = subprocess.CompletedProcess(args=[], returncode=3)
        with mock.patch("part2_helpers.urllib.request.urlretrieve", side_effect=_fake_retrieve("exit 3\n")), \
                mock.patch("part2_helpers.subprocess.run", return_value=done):
            with self.assertRaises(ScriptExecutionError):
                part2_helpers.run_remote_installer("https://x/install.sh", "Thing")


class TestSourceEnvironment(unittest.TestCase):
    def test_copies_changed_vars(self):
        out = "FOO=bar\0SHLVL=2\0KEEP=same\0BASH_FUNC_nvm%%=() {  }\0MULTI=a\nb\0"
        done = subprocess.CompletedProcess(args=[], returncode=0, stdout=out, stderr="")
        with mock.patch.dict(os.environ, {"KEEP": "same"}), \
                mock.patch("part2_helpers.subprocess.run", return_value=done):
            changed = part2_helpers.source_environment("true")
            self.assertEqual(os.environ["FOO"], "bar")
            self.assertEqual(os.environ["MULTI"], "a\nb")
        self.assertEqual(changed, {"FOO": "bar", "MULTI": "a\nb"})

    def test_failure_changes_nothing(self):
        done = subprocess.CompletedProcess(args=[], returncode=1, stdout="FOO=bar\0", stderr="boom")
        with mock.patch("part2_helpers.subprocess.run", return_value=done):
            self.assertEqual(part2_helpers.source_environment("false"), {})


class TestBrewShellenv(unittest.TestCase):
    def _load(self, existing):
        with mock.patch("part2_helpers.os.path.isfile", side_effect=lambda p: p in existing), \
                mock.patch("part2_helpers.source_environment") as source, \
                mock.patch("part2_helpers.log_warn") as warn:
            loaded = part2_helpers.load_brew_shellenv()
        return loaded, source, warn

    def test_prefers_apple_silicon(self):
        loaded, source, warn = self._load({"/opt/homebrew/bin/brew", "/usr/local/bin/brew"})
        self.assertTrue(loaded)
        source.assert_called_once_with('eval "$(/opt/homebrew/bin/brew shellenv)"')
        warn.assert_not_called()

    def test_falls_back_to_intel(self):
        loaded, source, _ = self._load({"/usr/local/bin/brew"})
        self.assertTrue(loaded)
        source.assert_called_once_with('eval "$(/usr/local/bin/brew shellenv)"')

    def test_neither_location(self):
        loaded, source, warn = self._load(set())
        self.assertFalse(loaded)
        source.assert_not_called()
        warn.assert_called_once()


class TestEnsureHomebrew(unittest.TestCase):
    def test_linux_noop(self):
        with mock.patch("part2_helpers.run_remote_installer") as installer, \
                mock.patch("part2_helpers.shutil.which") as which:
            part2_helpers.ensure_homebrew(LINUX)
        installer.assert_not_called()
        which.assert_not_called()

    def test_already_installed(self):
        with mock.patch("part2_helpers.shutil.which", return_value="/opt/homebrew/bin/brew"), \
                mock.patch("part2_helpers.run_remote_installer") as installer:
            part2_helpers.ensure_homebrew(MACOS)
        installer.assert_not_called()

    def test_installs_when_missing(self):
        with mock.patch("part2_helpers.shutil.which", side_effect=[None, "/opt/homebrew/bin/brew"]), \
                mock.patch("part2_helpers.run_remote_installer") as installer, \
                mock.patch("part2_helpers.load_brew_shellenv") as shellenv:
            part2_helpers.ensure_homebrew(MACOS)
        installer.assert_called_once()
        self.assertEqual(installer.call_args[0][0], part2_helpers.HOMEBREW_INSTALL_URL)
        shellenv.assert_called_once()

    def test_still_missing_after_install(self):
        with mock.patch("part2_helpers.shutil.which", return_value=None), \
                mock.patch("part2_helpers.run_remote_installer"), \
                mock.patch("part2_helpers.load_brew_shellenv"):
            with self.assertRaises(PackageManagerMissingError):
                part2_helpers.ensure_homebrew(MACOS)

    def test_installer_failure(self):
        with mock.patch("part2_helpers.shutil.which", return_value=None), \
                mock.patch("part2_helpers.run_remote_installer", side_effect=ScriptExecutionError("rc 1")):
            with self.assertRaises(PackageManagerInstallError):
                part2_helpers.ensure_homebrew(MACOS)


if __name__ == "__main__":
    unittest.main()
