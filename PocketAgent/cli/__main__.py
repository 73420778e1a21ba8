"""`python -m PocketAgent.cli` 的命令行启动入口。"""

from PocketAgent.cli.main import cli

if __name__ == "__main__":
    cli()
