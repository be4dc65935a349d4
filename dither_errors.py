#!/usr/bin/env python3
"""
img2dither 예외 정의

치명적 오류 (실행 중단):
    UsageError, NotFound, InvalidDimensions, InvalidMatrix
파일 단위 오류 (해당 파일만 건너뜀):
    DecodeError, WriteError
"""


class Img2DitherError(Exception):
    """img2dither 예외의 기본 클래스"""


class UsageError(Img2DitherError):
    """잘못된 명령행 인자"""


class NotFound(Img2DitherError, FileNotFoundError):
    """입력 디렉토리가 없거나 디렉토리가 아님"""

    def __init__(self, path, message=None):
        self.path = path
        super().__init__(message or f"Directory does not exist: {path}")


class DecodeError(Img2DitherError):
    """이미지를 열 수 없음 (손상, 미지원 형식, 읽기 실패)"""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to open image: {path} ({reason})")


class InvalidDimensions(Img2DitherError, ValueError):
    """목표 크기 또는 원본 크기가 유효하지 않음"""


class InvalidMatrix(Img2DitherError, ValueError):
    """디더링 매트릭스가 정사각형이 아니거나 값 범위를 벗어남"""


class InvalidPalette(InvalidMatrix):
    """팔레트 레벨 수가 유효하지 않음"""


class WriteError(Img2DitherError, OSError):
    """결과 이미지를 저장할 수 없음"""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to save image: {path} ({reason})")
