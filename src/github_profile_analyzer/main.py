from logging import Logger
from typing import Literal

import click
from fastmcp import FastMCP
from fastmcp.server.middleware.logging import LoggingMiddleware
from fastmcp.utilities.logging import get_logger

from github_profile_analyzer.clients.aggregate import ProfileAggregator
from github_profile_analyzer.clients.cache import get_analysis_cache
from github_profile_analyzer.clients.github import GitHubProfileClient
from github_profile_analyzer.clients.inference import InferenceClient
from github_profile_analyzer.sampling.analysis import AnalysisEngine
from github_profile_analyzer.servers.analyze import AnalyzeServer

logger: Logger = get_logger(name=__name__)

mcp: FastMCP[None] = FastMCP[None](name="GitHub Profile Analyzer")

mcp.add_middleware(middleware=LoggingMiddleware(include_payloads=True, logger=logger))

analyze_server: AnalyzeServer = AnalyzeServer(
    profile_fetcher=ProfileAggregator(profile_source=GitHubProfileClient(logger=logger), logger=logger),
    profile_analyzer=AnalysisEngine(inference_client=InferenceClient(logger=logger), logger=logger),
    cache=get_analysis_cache(),
    logger=logger,
)
_ = analyze_server.register_tools(fastmcp=mcp)
_ = analyze_server.register_routes(fastmcp=mcp)


@click.command()
@click.option(
    "--mcp-transport",
    type=click.Choice(["stdio", "streamable-http"]),
    default="stdio",
    help="The transport to run the MCP server on",
)
@click.option("--host", default="127.0.0.1", help="The host to serve streamable-http on")
@click.option("--port", default=8000, type=int, help="The port to serve streamable-http on")
def run_mcp(mcp_transport: Literal["stdio", "streamable-http"], host: str, port: int):
    if mcp_transport == "streamable-http":
        mcp.run(transport=mcp_transport, host=host, port=port)
        return

    mcp.run(transport=mcp_transport)


if __name__ == "__main__":
    run_mcp()
