"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# 用 Python 模拟的 bootstrap 脚本（不需要 PHP）
FAKE_BOOTSTRAP = Path(__file__).parent / "fixtures" / "fake_bootstrap.py"


@pytest.fixture
def fake_bootstrap() -> Path:
    """模拟 bootstrap 脚本路径。"""
    return FAKE_BOOTSTRAP


@pytest.fixture
def laravel_project(tmp_path: Path) -> Path:
    """最小的 Laravel 项目结构：composer.json + bootstrap/app.php + vendor/。"""
    root = tmp_path / "app"
    (root / "bootstrap").mkdir(parents=True)
    (root / "bootstrap" / "app.php").write_text("<?php\n", encoding="utf-8")
    (root / "vendor").mkdir()
    (root / "composer.json").write_text('{"name": "acme/app"}', encoding="utf-8")
    return root


@pytest.fixture
def stage_dir(tmp_path: Path) -> Path:
    """暂存脚本目录（便于断言临时文件已删除）。"""
    path = tmp_path / "stage"
    path.mkdir()
    return path
