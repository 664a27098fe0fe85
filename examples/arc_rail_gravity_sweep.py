"""
圆弧滑轨参考镜重力下沉扫描主程序

逐个姿态角生成重力下沉面形与 GridSag 文件，更新双通（或单通）
测试光路的运动学链，注入滑轨对准误差，取回 Zernike 系数，
最后保存 CSV / JSON 结果与系数曲线图。

使用方法：
    python examples/arc_rail_gravity_sweep.py [options]

示例：
    # 默认 5 个角度（0°..45°），进程内参考引擎
    python examples/arc_rail_gravity_sweep.py

    # 指定角度、分辨率和随机种子
    python examples/arc_rail_gravity_sweep.py --angles 0 15 30 45 60 --resolution 129 --seed 7

    # 从配置文件加载，使用 OpticStudio 引擎
    python examples/arc_rail_gravity_sweep.py --config sweep.json --zemax

作者：混合光学仿真项目
"""

import sys
import argparse
import warnings
from pathlib import Path

# ============================================================================
# 路径配置
# ============================================================================
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from gravity_sag import GridFileCodec  # noqa: E402
from gravity_sag.plotting import plot_deformation_field  # noqa: E402
from sag_sweep import (  # noqa: E402
    EngineFailureWarning,
    EngineUnavailableError,
    SagSweepError,
    SweepConfig,
    ZosApiEngine,
    run_sweep,
)
from sag_sweep.plotting import plot_coefficient_sweep  # noqa: E402


# ============================================================================
# 命令行接口
# ============================================================================
def parse_args():
    """解析命令行参数"""
    parser = argparse.ArgumentParser(
        description='圆弧滑轨参考镜重力下沉扫描',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='扫描配置 JSON 文件（命令行参数会覆盖其中的对应字段）'
    )

    parser.add_argument(
        '--angles', '-a',
        type=float,
        nargs='+',
        default=None,
        help='姿态角列表（度），默认 0 11.25 22.5 33.75 45'
    )

    parser.add_argument(
        '--resolution', '-r',
        type=int,
        default=None,
        help='网格每轴采样点数（奇数），默认 257'
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='对准误差随机种子'
    )

    parser.add_argument(
        '--single-pass',
        action='store_true',
        help='使用单通（Int 1）光路，默认双通（Int 2）'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        default='output/gravity_sweep',
        help='输出目录'
    )

    parser.add_argument(
        '--zemax',
        action='store_true',
        help='使用 OpticStudio（需要 zospy），默认使用进程内参考引擎'
    )

    parser.add_argument(
        '--show', '-s',
        action='store_true',
        help='显示图片窗口'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='静默模式'
    )

    return parser.parse_args()


def build_config(args) -> SweepConfig:
    """合并配置文件与命令行参数"""
    config = SweepConfig.load(args.config) if args.config else SweepConfig()
    output_dir = Path(args.output)
    if args.angles is not None:
        config.angles_deg = list(args.angles)
    if args.resolution is not None:
        config.resolution = args.resolution
    if args.seed is not None:
        config.seed = args.seed
    if args.single_pass:
        config.double_pass = False
    if not args.config:
        config.grid_dir = str(output_dir / 'grid_files')
    return config


def main():
    """主函数"""
    args = parse_args()
    verbose = not args.quiet
    output_dir = Path(args.output)

    try:
        config = build_config(args)
        config.validate()
        output_dir.mkdir(parents=True, exist_ok=True)
        config.save(output_dir / 'sweep_config.json')

        engine = None
        if args.zemax:
            engine = ZosApiEngine(wavelength_um=config.wavelength_um)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always', EngineFailureWarning)
            try:
                results = run_sweep(config, engine=engine, verbose=verbose)
            finally:
                if engine is not None:
                    engine.close()
        for w in caught:
            print(f"警告: {w.message}")

        results.save_csv(output_dir / 'sweep_results.csv')
        results.save_json(output_dir / 'sweep_results.json')
        plot_coefficient_sweep(
            results,
            indices=(4, 7),
            save_path=str(output_dir / 'coefficients.png'),
            show=args.show,
        )

        # 最大姿态角的面形
        last = results[len(results) - 1]
        if last.grid_file:
            plot_deformation_field(
                GridFileCodec.read(last.grid_file),
                title=f"重力下沉面形 θ = {last.angle_deg:.2f}°",
                save_path=str(output_dir / 'sag_last_angle.png'),
                show=args.show,
            )

        if verbose:
            print(results.summary())
            print(f"结果已保存到: {output_dir}")
        return 0 if not results.failed() else 3

    except EngineUnavailableError as e:
        print(f"分析引擎不可用: {e}")
        return 1
    except (SagSweepError, ValueError) as e:
        print(f"扫描失败: {e}")
        return 2


if __name__ == '__main__':
    sys.exit(main())
