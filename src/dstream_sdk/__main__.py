"""
命令行入口

    python -m dstream_sdk counter                      # stdio 传输
    python -m dstream_sdk counter --transport grpc     # gRPC 握手传输（需由编排器拉起）
    python -m dstream_sdk counter --transport grpc --standalone
    python -m dstream_sdk --list
"""

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

import dstream_sdk.providers  # noqa: F401  导入即注册内置 Provider
from dstream_sdk.hosts.bootstrap import TRANSPORTS, run_provider
from dstream_sdk.modules.config.host_settings import load_host_settings
from dstream_sdk.modules.logging import get_logger
from dstream_sdk.modules.registry import ProviderRegistry

logger = get_logger("CLI")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dstream-provider", description="DStream Provider 宿主")
    parser.add_argument("provider", nargs="?", help="已注册的 Provider 名称（如 counter、console）")
    parser.add_argument("--transport", choices=TRANSPORTS, default="stdio", help="传输方式（默认 stdio）")
    parser.add_argument("--standalone", action="store_true", help="gRPC 模式下跳过编排器环境检查")
    parser.add_argument("--debug", action="store_true", help="启用 DEBUG 级别日志输出")
    parser.add_argument("--settings", type=Path, metavar="PATH", help="宿主设置 TOML 文件（读取 [host] 表）")
    parser.add_argument("--list", action="store_true", help="列出已注册的 Provider 后退出")
    parser.add_argument(
        "--dump-config",
        type=Path,
        metavar="PATH",
        help="把所选 Provider 的默认配置写成 TOML 模板后退出",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list:
        for name in ProviderRegistry.list_input_providers():
            print(f"input   {name}")
        for name in ProviderRegistry.list_output_providers():
            print(f"output  {name}")
        return 0

    if not args.provider:
        parser.print_usage(sys.stderr)
        logger.error("缺少 Provider 名称")
        return 1

    try:
        provider_cls, config_cls = ProviderRegistry.create(args.provider)
    except KeyError as e:
        logger.error(str(e.args[0]))
        return 1

    if args.dump_config:
        config_cls.generate_toml(args.dump_config, provider_name=args.provider.lower())
        logger.info(f"默认配置已写入: {args.dump_config}")
        return 0

    settings = load_host_settings(args.settings)
    return run_provider(
        provider_cls,
        config_cls,
        transport=args.transport,
        settings=settings,
        provider_name=args.provider.lower(),
        standalone=args.standalone,
        debug=args.debug,
    )


if __name__ == "__main__":
    sys.exit(main())
