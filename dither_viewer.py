#!/usr/bin/env python3
"""
디더링 결과 PNG 검증 및 미리보기 도구

사용법:
    python3 dither_viewer.py input.png [preview.png] [--levels N]
"""

import argparse
import sys
from dataclasses import dataclass
from typing import Dict

import numpy as np
from PIL import Image

from bayer_dither import DEFAULT_LEVELS, level_counts
from dither_errors import DecodeError
from image_adjustments import load_image

PREVIEW_SCALE = 4


@dataclass(frozen=True)
class InspectionReport:
    width: int
    height: int
    mode: str
    channels: int
    counts: Dict[int, int]
    off_palette: int

    @property
    def value_count(self):
        """검사한 채널 값 개수 (픽셀 수 x 채널 수)"""
        return self.width * self.height * self.channels

    @property
    def is_valid(self):
        return self.off_palette == 0


def inspect_image(path, levels=DEFAULT_LEVELS):
    """
    디더링 결과 이미지 검사

    모든 채널 값이 팔레트 레벨 중 하나인지 확인하고 레벨별 분포를 셉니다.

    Raises:
        DecodeError: 이미지를 열 수 없을 때
    """
    img = load_image(path)
    counts, off_palette = level_counts(np.asarray(img), levels)
    return InspectionReport(img.width, img.height, img.mode, len(img.getbands()), counts, off_palette)


def write_preview(path, output, scale=PREVIEW_SCALE):
    """점 패턴이 보이도록 nearest로 확대한 미리보기 저장"""
    img = load_image(path)
    preview = img.resize((img.width * scale, img.height * scale), Image.Resampling.NEAREST)
    preview.save(output)
    return output


def print_report(path, report, levels):
    print(f"이미지 로딩: {path}")
    print("=" * 50)
    print(f"\n크기: {report.width}x{report.height} ({report.mode} 모드)")

    total_values = report.value_count
    print(f"\n레벨 분포 (채널당 {levels}레벨):")
    print("-" * 50)
    print(f"{'레벨':<8} {'값 개수':<15} {'비율':<10}")
    print("-" * 50)
    for level, count in report.counts.items():
        percentage = (count / total_values) * 100 if total_values else 0.0
        print(f"{level:<8} {count:<15,} {percentage:>6.2f}%")

    if report.is_valid:
        print("\n✓ 모든 값이 팔레트 레벨입니다")
    else:
        print(f"\n⚠️  경고: 팔레트 밖의 값이 있습니다!")
        print(f"   유효하지 않은 값: {report.off_palette:,}개")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='디더링 결과 PNG 검증 및 미리보기 생성',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
예제:
  # 흑백 결과 검증
  python3 dither_viewer.py photos/dithers/cat.jpg.png

  # 채널당 4레벨 결과 검증 + 미리보기 저장
  python3 dither_viewer.py out.png preview.png --levels 4
        """
    )

    parser.add_argument('image', help='검증할 이미지 경로')
    parser.add_argument('preview', nargs='?', help='미리보기 저장 경로 (선택)')
    parser.add_argument('--levels', type=int, default=DEFAULT_LEVELS,
                        help=f'채널당 레벨 수 (기본값: {DEFAULT_LEVELS})')
    parser.add_argument('--scale', type=int, default=PREVIEW_SCALE,
                        help=f'미리보기 확대 배율 (기본값: {PREVIEW_SCALE})')

    args = parser.parse_args(argv)

    try:
        report = inspect_image(args.image, args.levels)
        print_report(args.image, report, args.levels)
        if args.preview:
            write_preview(args.image, args.preview, args.scale)
            print(f"\n✓ 미리보기 저장: {args.preview}")
    except DecodeError as e:
        print(f"\n오류: 이미지를 열 수 없습니다 - {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"\n오류 발생: {e}", file=sys.stderr)
        return 1

    print("\n" + "=" * 50)
    print("검증 완료!")
    return 0 if report.is_valid else 1


if __name__ == '__main__':
    sys.exit(main())
