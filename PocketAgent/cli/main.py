"""
CLI 主入口 - 使用 Click 框架
CLI main entry - using Click framework.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys

import click

from PocketAgent.config.defaults import build_default_config
from PocketAgent.config.manager import ConfigManager


def _load_config(config_path: str | None) -> ConfigManager:
    config_mgr = ConfigManager(defaults=build_default_config(), config_path=config_path)
    asyncio.run(config_mgr.load(persist=False))
    return config_mgr


def _mask(secret: str) -> str:
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}...{secret[-4:]}"


@click.group()
@click.option(
    "--config",
    "config_path",
    default=None,
    envvar="POCKETAGENT_CONFIG",
    help="配置文件路径 / Config file path",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """PocketAgent - 多渠道工具调用对话智能体"""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.option("--log-level", default=None, help="控制台日志级别 / Console log level")
@click.pass_context
def run(ctx: click.Context, log_level: str | None) -> None:
    """启动 PocketAgent 与所有启用的渠道 / Start PocketAgent and every enabled channel."""
    from PocketAgent.kernel.bootstrap import Bootstrap
    from PocketAgent.kernel.logging import get_log_manager

    log_manager = get_log_manager()
    logger = logging.getLogger("PocketAgent")

    bootstrap = Bootstrap(config_path=ctx.obj["config_path"])

    async def main() -> None:
        await bootstrap.start()
        if log_level:
            log_manager.set_level(log_level)
        await bootstrap.run_forever()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("收到键盘中断信号")
    except ValueError as exc:
        click.secho(str(exc), fg="red", err=True)
        sys.exit(1)
    except Exception:
        logger.exception("致命错误")
        sys.exit(1)


@cli.command()
@click.option("-m", "--message", default=None, help="单次消息 / One-shot message")
@click.option("-s", "--session", default="cli:direct", help="会话键 / Session key")
@click.option("--log-level", default="WARNING", help="控制台日志级别 / Console log level")
@click.pass_context
def agent(ctx: click.Context, message: str | None, session: str, log_level: str) -> None:
    """与智能体对话 / Chat with the agent from the terminal."""
    from PocketAgent.kernel.bootstrap import Bootstrap
    from PocketAgent.kernel.logging import get_log_manager

    get_log_manager().set_level(log_level)
    bootstrap = Bootstrap(config_path=ctx.obj["config_path"], channels=["cli"])

    async def one_shot(text: str) -> str:
        loop = await bootstrap.init_core()
        try:
            return await loop.process_direct(text, session_key=session)
        finally:
            await bootstrap.intellect.close()

    async def interactive() -> None:
        await bootstrap.start()
        # 配置中的日志级别不应覆盖命令行参数
        get_log_manager().set_level(log_level)
        await bootstrap.run_forever(stop_when_channels_exit=True)

    try:
        if message:
            click.echo(asyncio.run(one_shot(message)))
        else:
            asyncio.run(interactive())
    except KeyboardInterrupt:
        pass
    except ValueError as exc:
        click.secho(str(exc), fg="red", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """初始化配置 / Initialize configuration."""
    from PocketAgent.utils.paths import get_config_file, get_workspace_path

    config_path = ctx.obj["config_path"] or get_config_file()
    os.makedirs(os.path.dirname(config_path) or ".", exist_ok=True)

    if os.path.exists(config_path):
        click.echo(f"配置文件已存在: {config_path}")
        if not click.confirm("是否覆盖?"):
            return

    config = build_default_config()
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config, f, ensure_ascii=False, indent=2)

    click.echo(f"配置文件已创建: {config_path}")
    click.echo(f"工作区: {get_workspace_path(None)}")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """显示配置与提供者状态 / Show configuration and provider status."""
    from PocketAgent.intellect.resolver import provider_credential, select_provider
    from PocketAgent.utils.paths import get_workspace_path

    config_mgr = _load_config(ctx.obj["config_path"])
    conf = config_mgr.as_dict()
    selection = select_provider(conf)

    click.echo(f"配置文件: {config_mgr.path}")
    click.echo(f"工作区: {get_workspace_path(config_mgr.get('agents.defaults.workspace'))}")
    click.echo(f"模型: {selection.model} -> {selection.resolved_model}")
    if selection.has_credentials:
        click.echo(f"提供者: {selection.display_name} ({selection.api_base})")
    else:
        click.secho("提供者: 未配置 API key", fg="yellow")

    click.echo("凭据:")
    for name, pconf in (conf.get("providers") or {}).items():
        key = provider_credential(name, pconf or {}, os.environ)
        mark = click.style("✓", fg="green") if key else click.style("-", dim=True)
        click.echo(f"  {mark} {name}{': ' + _mask(key) if key else ''}")


@cli.group()
def conf() -> None:
    """配置管理 / Configuration management."""
    pass


@conf.command("show")
@click.argument("key", required=False)
@click.pass_context
def conf_show(ctx: click.Context, key: str | None) -> None:
    """显示配置 / Show configuration."""
    from PocketAgent.utils.paths import get_config_file

    config_path = ctx.obj["config_path"] or get_config_file()
    if not os.path.exists(config_path):
        click.echo("配置文件不存在，请先运行 init")
        return

    config_mgr = _load_config(config_path)
    if key:
        value = config_mgr.get(key)
        if value is None:
            click.echo(f"键 '{key}' 不存在")
            return
        click.echo(json.dumps(value, ensure_ascii=False, indent=2))
    else:
        click.echo(json.dumps(config_mgr.as_dict(), ensure_ascii=False, indent=2))


@cli.command()
def version() -> None:
    """显示版本信息 / Show version info."""
    from PocketAgent import __app_name__, __version__

    click.echo(f"{__app_name__} v{__version__}")


if __name__ == "__main__":
    cli()
