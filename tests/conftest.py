"""
pytest 공통 fixture 정의
"""

import tempfile
from pathlib import Path

import pytest


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_settings_file(temp_dir: Path) -> Path:
    """테스트용 ledger.yaml 파일 생성"""
    settings_content = """# 테스트용 ledger.yaml
mode: testnet

database:
  path: null
  busy_timeout_ms: 5000

ledger:
  conflict_policy: PARTIAL
  mutation_hash_size: 32
"""
    settings_path = temp_dir / "ledger.yaml"
    settings_path.write_text(settings_content, encoding="utf-8")
    return settings_path


@pytest.fixture
def temp_settings_file_production(temp_dir: Path) -> Path:
    """테스트용 ledger.yaml 파일 생성 (production 모드, DB 경로 지정)"""
    settings_content = f"""mode: production

database:
  path: "{(temp_dir / 'prod.db').as_posix()}"
"""
    settings_path = temp_dir / "ledger_prod.yaml"
    settings_path.write_text(settings_content, encoding="utf-8")
    return settings_path


@pytest.fixture
def temp_settings_file_invalid_mode(temp_dir: Path) -> Path:
    """잘못된 모드의 ledger.yaml 파일 생성"""
    settings_content = """mode: invalid_mode

ledger:
  conflict_policy: ABORT
"""
    settings_path = temp_dir / "ledger_invalid.yaml"
    settings_path.write_text(settings_content, encoding="utf-8")
    return settings_path
