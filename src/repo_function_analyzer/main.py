import asyncio
import json
from logging import Logger
from typing import Literal

import click
from fastmcp import FastMCP
from fastmcp.server.middleware.logging import LoggingMiddleware
from fastmcp.utilities.logging import get_logger

from repo_function_analyzer.models.records import ConstructRecord
from repo_function_analyzer.models.repository.tree import FileNode
from repo_function_analyzer.servers.explorer import FunctionExplorerServer

logger: Logger = get_logger(name=__name__)

mcp: FastMCP[None] = FastMCP[None](name="Repository Function Analyzer")

mcp.add_middleware(middleware=LoggingMiddleware(include_payloads=True, logger=logger))

explorer_server: FunctionExplorerServer = FunctionExplorerServer(logger=logger)
_ = explorer_server.register_tools(fastmcp=mcp)


@click.group()
def cli():
    """Browse GitHub repositories and explain the functions and classes in their JavaScript and TypeScript files."""


@cli.command(name="mcp")
@click.option(
    "--mcp-transport",
    type=click.Choice(["stdio", "streamable-http"]),
    default="stdio",
    help="The transport to run the MCP server on",
)
def run_mcp(mcp_transport: Literal["stdio", "streamable-http"]):
    mcp.run(transport=mcp_transport)


@cli.command(name="analyze")
@click.argument("owner")
@click.argument("repo")
@click.argument("path")
def analyze(owner: str, repo: str, path: str):
    """Print the construct records of one file as JSON."""

    records: list[ConstructRecord] = asyncio.run(explorer_server.analyze_file(owner=owner, repo=repo, path=path))

    click.echo(json.dumps([record.model_dump(mode="json") for record in records], indent=2))


def _render_tree(nodes: list[FileNode] | tuple[FileNode, ...], depth: int = 0) -> list[str]:
    lines: list[str] = []
    for node in nodes:
        lines.append(f"{'  ' * depth}{node.name}{'' if node.is_file else '/'}")
        lines.extend(_render_tree(node.children, depth + 1))
    return lines


@cli.command(name="tree")
@click.argument("owner")
@click.argument("repo")
def tree(owner: str, repo: str):
    """Print the file tree of a repository."""

    file_tree: list[FileNode] = asyncio.run(explorer_server.load_repository(owner=owner, repo=repo))

    click.echo("\n".join(_render_tree(file_tree)))


if __name__ == "__main__":
    cli()
