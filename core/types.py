"""
타입 정의 모듈

Enum 등 프로세스 전역 타입 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from enum import Enum


class LedgerMode(str, Enum):
    """운영 모드 (실운영 / 테스트넷)

    모드에 따라 사용할 DB 파일이 달라짐.
    """

    PRODUCTION = "production"
    TESTNET = "testnet"


class ConflictPolicy(str, Enum):
    """Mutation 내 충돌 처리 정책

    ABORT: 한 트랜잭션으로 묶어 첫 충돌에서 전체 롤백
    PARTIAL: 계정별 독립 적용, 충돌은 결과에 계정 단위로 보고
    """

    ABORT = "ABORT"
    PARTIAL = "PARTIAL"
