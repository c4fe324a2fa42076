"""
Hope & Failure Band Site - Admin Hash Script Tests

Tests for scripts/generate_admin_hash.py: the hash it prints must be
accepted by the admin password check.
"""

import sys
from pathlib import Path
from unittest.mock import patch

import bcrypt

# Add the project root to sys.path so we can import the scripts module
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from scripts.generate_admin_hash import hash_password, main

from bandsite import auth


class TestHashPassword:
    def test_hash_verifies(self):
        hashed = hash_password("s3cret", rounds=4)
        assert hashed.startswith("$2b$04$")
        assert bcrypt.checkpw(b"s3cret", hashed.encode())

    def test_hash_accepted_by_admin_gate(self):
        hashed = hash_password("s3cret", rounds=4)
        with patch.object(auth, "ADMIN_PASSWORD_HASH", hashed):
            assert auth.verify_admin_password("s3cret") is True
            assert auth.verify_admin_password("wrong") is False


class TestMain:
    def test_quiet_prints_only_hash(self, capsys):
        with patch.object(sys, "argv", ["generate_admin_hash.py", "s3cret", "--rounds", "4", "-q"]):
            assert main() == 0
        out = capsys.readouterr().out.strip()
        assert bcrypt.checkpw(b"s3cret", out.encode())

    def test_env_line(self, capsys):
        with patch.object(sys, "argv", ["generate_admin_hash.py", "s3cret", "--rounds", "4"]):
            assert main() == 0
        assert "ADMIN_PASSWORD_HASH=$2b$04$" in capsys.readouterr().out

    def test_bad_rounds(self, capsys):
        with patch.object(sys, "argv", ["generate_admin_hash.py", "s3cret", "--rounds", "2"]):
            assert main() == 1
        assert "--rounds" in capsys.readouterr().err

    def test_prompt_mismatch(self, capsys):
        with patch.object(sys, "argv", ["generate_admin_hash.py"]), patch(
            "getpass.getpass", side_effect=["one", "two"]
        ):
            assert main() == 1
        assert "do not match" in capsys.readouterr().err

    def test_prompt(self, capsys):
        with patch.object(sys, "argv", ["generate_admin_hash.py", "-q", "--rounds", "4"]), patch(
            "getpass.getpass", side_effect=["s3cret", "s3cret"]
        ):
            assert main() == 0
        assert bcrypt.checkpw(b"s3cret", capsys.readouterr().out.strip().encode())
