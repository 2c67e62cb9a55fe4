import click

from cli.multi_proxy_analysis import multi_proxy_analysis
from cli.proxy_detection import proxy_detection


@click.group()
@click.version_option(version="1.0.0")
@click.pass_context
def cli(ctx):
    pass


# Pass 1: corpus-wide proxy detection
cli.add_command(proxy_detection, "proxy_detection")

# Pass 2: implementation resolution of multi-proxy candidates
cli.add_command(multi_proxy_analysis, "multi_proxy_analysis")
