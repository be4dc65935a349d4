#!/usr/bin/env python3
"""
디렉토리 트리에서 변환 대상 이미지 파일 찾기

- 하위 디렉토리까지 재귀 탐색, 각 단계에서 이름순 정렬 (실행마다 같은 순서)
- 심볼릭 링크는 따라가지 않음
- '.'으로 시작하는 파일/디렉토리는 건너뜀
- 읽을 수 없는 하위 디렉토리는 경고 후 건너뜀
"""

import logging
import os
from pathlib import Path

from dither_errors import NotFound

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp', '.tif', '.tiff'}


def is_supported_image(path):
    """확장자로 지원 이미지 여부 판단 (대소문자 무시)"""
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def _sorted_entries(directory):
    with os.scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)


def _walk(directory, excluded):
    try:
        entries = _sorted_entries(directory)
    except OSError as e:
        logger.warning("Skipping unreadable directory %s: %s", directory, e)
        return

    for entry in entries:
        if entry.name.startswith('.'):
            continue
        # 링크는 파일이든 디렉토리든 무시 (순환 방지)
        if entry.is_symlink():
            continue

        path = Path(entry.path)
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = entry.is_file(follow_symlinks=False)
        except OSError as e:
            logger.warning("Skipping %s: %s", path, e)
            continue

        if is_dir:
            if path.resolve() in excluded:
                logger.debug("Skipping excluded directory %s", path)
                continue
            yield from _walk(path, excluded)
        elif is_file and is_supported_image(path):
            yield path


def iter_image_files(root, exclude=()):
    """
    root 아래의 이미지 파일 경로를 순서대로 생성

    Args:
        root: 탐색할 디렉토리
        exclude: 들어가지 않을 디렉토리 목록 (예: 입력 폴더 안의 출력 폴더)

    Returns:
        Path iterator. 다시 호출하면 처음부터 다시 탐색합니다.

    Raises:
        NotFound: root가 없거나 디렉토리가 아닐 때 (즉시 발생)
    """
    root = Path(root)
    if not root.is_dir():
        raise NotFound(root)

    excluded = {Path(p).resolve() for p in exclude}
    return _walk(root, excluded)


def list_image_files(root, exclude=()):
    """iter_image_files 결과를 리스트로 반환"""
    return list(iter_image_files(root, exclude))
