"""
Test play CLI
Settings in a .env file must reach scratch_game.config
"""

import os
import subprocess
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

DOTENV_KEYS = ("SHEET_URL", "GAME_TIMEZONE", "RECORD_PUSH_ATTEMPTS")


def test_dotenv_settings_reach_config(tmp_path):
    (tmp_path / ".env").write_text(
        "SHEET_URL=https://dotenv.example/exec\n"
        "GAME_TIMEZONE=Asia/Singapore\n"
        "RECORD_PUSH_ATTEMPTS=5\n"
    )
    env = {k: v for k, v in os.environ.items() if k not in DOTENV_KEYS}
    env["PYTHONPATH"] = os.pathsep.join(p for p in (ROOT, env.get("PYTHONPATH")) if p)

    code = (
        "import play\n"
        "from scratch_game import config\n"
        "print(config.SHEET_URL, config.GAME_TIMEZONE, config.RECORD_PUSH_ATTEMPTS)\n"
    )
    result = subprocess.run([sys.executable, "-c", code], cwd=str(tmp_path), env=env,
                            capture_output=True, text=True, timeout=60)

    assert result.returncode == 0, result.stderr
    assert result.stdout.split() == ["https://dotenv.example/exec", "Asia/Singapore", "5"]
