"""
Browser Remote Agent - 基于 Playwright 的远程命令执行 Agent

工作方式：
  1. 定时（默认每 6 秒）向服务器拉取待执行的命令队列
  2. 为每条命令选择目标标签页，在页面内执行点击、输入、滚动、选择、跳转等操作
  3. 每条命令执行完立即把结果回报给服务器，再执行下一条

依赖安装：
    pip install -e .
    playwright install chromium

运行示例：
    browser-remote configure --server-url https://example.com --api-key KEY
    browser-remote register
    browser-remote run
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from browser_remote.config import AgentConfig
from browser_remote.core import RemoteAgent
from browser_remote.errors import AgentError, ConfigurationError

logger = logging.getLogger("browser_remote")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[BRC %(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="browser-remote", description="远程命令执行 Agent")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="常驻运行，定时轮询（默认）")
    sub.add_parser("once", help="执行一个轮询周期后退出")
    sub.add_parser("register", help="向服务器注册本浏览器")
    sub.add_parser("status", help="显示当前设置")

    configure = sub.add_parser("configure", help="修改服务器设置（会清除注册状态）")
    configure.add_argument("--server-url")
    configure.add_argument("--api-key")
    configure.add_argument("--label")
    return parser


def print_status(settings) -> None:
    print(f"浏览器 ID : {settings.browser_id or '(未生成)'}")
    print(f"名称      : {settings.label}")
    print(f"服务器    : {settings.server_url or '(未设置)'}")
    print(f"API key   : {'已设置' if settings.api_key else '(未设置)'}")
    print(f"注册状态  : {'✓ 已注册' if settings.registered else '未注册'}")


def main(argv=None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    try:
        config = AgentConfig.from_env()
    except ConfigurationError as e:
        configure_logging("INFO")
        logger.error("❌ %s", e)
        return 2
    configure_logging(config.log_level)
    agent = RemoteAgent(config)
    command = args.command or "run"

    if command == "configure":
        changes = {
            "server_url": args.server_url.strip() if args.server_url else None,
            "api_key": args.api_key.strip() if args.api_key else None,
            "label": args.label.strip() if args.label else None,
        }
        agent.store.update(**{k: v for k, v in changes.items() if v is not None})
        print_status(agent.store.ensure_identity())
        return 0

    if command == "status":
        print_status(agent.store.load())
        return 0

    try:
        if command == "register":
            agent.prepare_settings()
            asyncio.run(agent.register())
        elif command == "once":
            asyncio.run(agent.run_once())
        else:
            asyncio.run(agent.run())
    except AgentError as e:
        logger.error("❌ %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("已中断")
    return 0


if __name__ == "__main__":
    sys.exit(main())
