#!/usr/bin/env python3
"""
디렉토리의 이미지들을 축소 + Bayer 디더링하여 저저비트 디스플레이용 PNG로 변환

사용법:
    python3 img2dither.py <input_directory> [max_image_side] [bayer_order]

옵션:
    --output-dir DIR    출력 루트 (기본값: <input_directory>/dithers)
    --levels N          채널당 출력 레벨 수 (기본값: 2, 흑백)
    --color             그레이스케일 변환 없이 채널별 디더링
    --workers N         동시 처리 스레드 수
    --skip-existing     출력 파일이 이미 있으면 건너뜀
    --log-level LEVEL   로그 레벨 (기본값: INFO)
"""

import argparse
import logging
import os
import sys
import tempfile
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from bayer_dither import DEFAULT_BAYER_ORDER, DEFAULT_LEVELS, DitherMatrix, dither_image, is_power_of_two
from dither_errors import DecodeError, Img2DitherError, NotFound, UsageError, WriteError
from image_adjustments import flatten_alpha, load_image, resize_to_max_side, to_luminance
from image_discovery import iter_image_files

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_SIDE = 800
OUTPUT_DIR_NAME = 'dithers'
OUTPUT_SUFFIX = '.png'
DEFAULT_WORKERS = min(32, (os.cpu_count() or 1) + 4)
# 작업 스레드당 대기 중인 작업 수 상한
QUEUE_PER_WORKER = 2


@dataclass(frozen=True)
class DitherConfig:
    """변환 실행 설정"""
    input_dir: Path
    output_dir: Path
    max_image_side: int = DEFAULT_MAX_IMAGE_SIDE
    bayer_order: int = DEFAULT_BAYER_ORDER
    levels: int = DEFAULT_LEVELS
    color: bool = False
    workers: int = DEFAULT_WORKERS
    skip_existing: bool = False


@dataclass(frozen=True)
class ProcessResult:
    """파일 하나의 처리 결과 (status: ok / skipped / failed)"""
    source: Path
    output: Path
    status: str
    error: Optional[str] = None


@dataclass
class BatchSummary:
    succeeded: int = 0
    skipped: int = 0
    failed: List[Tuple[Path, str]] = field(default_factory=list)

    @property
    def total(self):
        return self.succeeded + self.skipped + len(self.failed)

    def add(self, result):
        if result.status == 'ok':
            self.succeeded += 1
        elif result.status == 'skipped':
            self.skipped += 1
        else:
            self.failed.append((result.source, result.error))


def output_path_for(source, input_root, output_root):
    """
    입력 경로 -> 출력 경로

    input_root 기준 상대 경로를 output_root 아래에 그대로 유지합니다.
    .png가 아니면 확장자를 덧붙입니다 (a.jpg -> a.jpg.png, a.png -> a.png).
    """
    relative = Path(source).relative_to(input_root)
    if relative.suffix.lower() != OUTPUT_SUFFIX:
        relative = relative.with_name(relative.name + OUTPUT_SUFFIX)
    return Path(output_root) / relative


def convert_image(source, matrix, max_image_side=DEFAULT_MAX_IMAGE_SIDE,
                  levels=DEFAULT_LEVELS, color=False):
    """디코딩 -> 축소 -> (그레이스케일) -> 디더링"""
    img = load_image(source)
    original_size = img.size
    img = resize_to_max_side(img, max_image_side)
    logger.debug("%s: %s -> %s (%s)", source, original_size, img.size, img.mode)

    img = flatten_alpha(img) if color else to_luminance(img)
    return dither_image(img, matrix, levels)


def save_image(img, path):
    """
    PNG로 저장 (임시 파일에 쓴 뒤 rename)

    상위 디렉토리는 필요하면 생성합니다. 다른 스레드가 동시에 같은 디렉토리를
    만들어도 오류가 아닙니다.

    Raises:
        WriteError: 디렉토리 생성이나 저장에 실패한 경우 (부분 파일은 남지 않음)
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteError(path.parent, e) from e

    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(dir=path.parent, prefix='.' + path.name + '.',
                                         suffix='.tmp', delete=False) as tmp:
            tmp_name = tmp.name
            img.save(tmp, format='PNG')
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except (OSError, ValueError) as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise WriteError(path, e) from e


def process_image(source, config, matrix):
    """
    파일 하나 변환

    DecodeError, WriteError는 로그를 남기고 failed 결과로 반환합니다.
    그 외 예외(InvalidDimensions, InvalidMatrix 등)는 그대로 전파됩니다.
    """
    output = output_path_for(source, config.input_dir, config.output_dir)

    if config.skip_existing and output.exists():
        logger.info("Skipping already processed: %s", source)
        return ProcessResult(source, output, 'skipped')

    try:
        dithered = convert_image(source, matrix, config.max_image_side,
                                 config.levels, config.color)
        save_image(dithered, output)
    except (DecodeError, WriteError) as e:
        logger.error("Failed to process %s: %s", source, e)
        return ProcessResult(source, output, 'failed', str(e))

    logger.info("Processed %s -> %s (%dx%d)", source, output, dithered.width, dithered.height)
    return ProcessResult(source, output, 'ok')


def run_batch(config):
    """
    입력 디렉토리 전체 변환

    디더링 매트릭스는 한 번만 만들어서 모든 작업 스레드가 공유합니다.
    한 파일이 실패해도 나머지 파일은 계속 처리합니다.

    Raises:
        NotFound: 입력 디렉토리가 없을 때
    """
    logger.info("Starting image processing in directory: %s", config.input_dir)
    files = iter_image_files(config.input_dir, exclude=[config.output_dir])
    matrix = DitherMatrix.bayer(config.bayer_order)
    summary = BatchSummary()

    max_pending = config.workers * QUEUE_PER_WORKER
    pending = deque()

    with ThreadPoolExecutor(max_workers=config.workers) as pool:
        try:
            for path in files:
                # 대기열이 차면 가장 오래된 작업을 기다린 뒤 다음 파일 탐색
                if len(pending) >= max_pending:
                    summary.add(pending.popleft().result())
                pending.append(pool.submit(process_image, path, config, matrix))
            while pending:
                summary.add(pending.popleft().result())
        except BaseException:
            # 치명적 오류: 아직 시작하지 않은 작업은 취소
            for future in pending:
                future.cancel()
            raise

    if summary.total == 0:
        logger.warning("No image files found in %s", config.input_dir)
        return summary

    logger.info("Summary: processed %d file(s) - OK=%d, Skipped=%d, Failed=%d",
                summary.total, summary.succeeded, summary.skipped, len(summary.failed))
    for path, reason in summary.failed:
        logger.warning("  failed: %s (%s)", path, reason)
    return summary


def _positive_int(value, name):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise UsageError(f"{name} must be a positive integer, got {value!r}") from None
    if number <= 0:
        raise UsageError(f"{name} must be a positive integer, got {value!r}")
    return number


def build_parser():
    parser = argparse.ArgumentParser(
        prog='img2dither',
        description='디렉토리의 이미지들을 축소하고 Bayer 디더링하여 PNG로 저장',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
예제:
  # 긴 변 800px, 8x8 Bayer, 흑백 (기본값)
  python3 img2dither.py photos/

  # 긴 변 480px, 4x4 Bayer
  python3 img2dither.py photos/ 480 4

  # 컬러, 채널당 4레벨
  python3 img2dither.py photos/ --color --levels 4

출력:
  <input_directory>/dithers/ 아래에 입력과 같은 폴더 구조로 PNG 저장
        """
    )

    parser.add_argument('input_directory', help='입력 이미지 디렉토리')
    parser.add_argument('max_image_side', nargs='?', default=str(DEFAULT_MAX_IMAGE_SIDE),
                        help=f'긴 변의 최대 길이 (기본값: {DEFAULT_MAX_IMAGE_SIDE})')
    parser.add_argument('bayer_order', nargs='?', default=str(DEFAULT_BAYER_ORDER),
                        help=f'Bayer 매트릭스 크기, 2의 거듭제곱 (기본값: {DEFAULT_BAYER_ORDER})')
    parser.add_argument('--output-dir', help=f'출력 루트 (기본값: <input_directory>/{OUTPUT_DIR_NAME})')
    parser.add_argument('--levels', default=str(DEFAULT_LEVELS),
                        help=f'채널당 출력 레벨 수 (기본값: {DEFAULT_LEVELS})')
    parser.add_argument('--color', action='store_true',
                        help='그레이스케일 변환 없이 채널별로 디더링')
    parser.add_argument('--workers', default=str(DEFAULT_WORKERS),
                        help=f'동시 처리 스레드 수 (기본값: {DEFAULT_WORKERS})')
    parser.add_argument('--skip-existing', action='store_true',
                        help='출력 파일이 이미 있으면 건너뜀')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='로그 레벨 (기본값: INFO)')
    return parser


def config_from_args(args):
    """
    파싱된 인자 검증 후 DitherConfig 생성

    Raises:
        UsageError: 숫자 인자가 잘못된 경우
        NotFound: 입력 디렉토리가 없거나 디렉토리가 아닌 경우
    """
    max_image_side = _positive_int(args.max_image_side, 'max_image_side')
    bayer_order = _positive_int(args.bayer_order, 'bayer_order')
    if bayer_order < 2 or not is_power_of_two(bayer_order):
        raise UsageError(f"Bayer order must be a power of 2 (>= 2), got {bayer_order}")
    levels = _positive_int(args.levels, 'levels')
    if not 2 <= levels <= 256:
        raise UsageError(f"levels must be between 2 and 256, got {levels}")
    workers = _positive_int(args.workers, 'workers')

    input_dir = Path(args.input_directory)
    if not input_dir.is_dir():
        raise NotFound(input_dir)

    output_dir = Path(args.output_dir) if args.output_dir else input_dir / OUTPUT_DIR_NAME
    return DitherConfig(
        input_dir=input_dir,
        output_dir=output_dir,
        max_image_side=max_image_side,
        bayer_order=bayer_order,
        levels=levels,
        color=args.color,
        workers=workers,
        skip_existing=args.skip_existing,
    )


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    try:
        config = config_from_args(args)
    except UsageError as e:
        parser.print_usage(sys.stderr)
        print(f"\n오류: {e}", file=sys.stderr)
        return 2
    except NotFound as e:
        print(f"\n오류: 디렉토리를 찾을 수 없습니다 - {e.path}", file=sys.stderr)
        return 1

    try:
        run_batch(config)
    except Img2DitherError as e:
        logger.critical("Fatal: %s", e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
