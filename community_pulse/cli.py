"""
Command-line interface for community-pulse.

Usage:
    community-pulse serve      # Run the API server with the background scheduler
    community-pulse run-once   # Fetch every source once and print the snapshots
    community-pulse sources    # List the registry
    community-pulse health     # Check provider configuration and reachability
"""

import asyncio
import json
import sys

import click

from community_pulse.config.settings import get_settings
from community_pulse.observability.logging import setup_logging
from community_pulse.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Community Pulse - live health dashboard for chat communities."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging(stream=sys.stderr)

    settings = get_settings()
    if settings.tracing_enabled:
        from community_pulse.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(
    host: str | None,
    port: int | None,
    reload: bool,
    metrics: bool,
    metrics_port: int | None,
) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    if metrics:
        metrics_port = metrics_port or settings.metrics_port
        get_metrics().start_server(port=metrics_port)
        click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")

    click.echo(f"Starting API server on {host}:{port} (provider={settings.provider})")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "community_pulse.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command("run-once")
@click.option("--mock", is_flag=True, help="Use the mock provider")
@click.option("--pretty/--compact", default=True, help="Indent JSON output")
def run_once(mock: bool, pretty: bool) -> None:
    """Run one fetch cycle and print the resulting snapshots as JSON."""
    from community_pulse.providers.mock_provider import MockProvider
    from community_pulse.service import PulseService

    async def run() -> dict:
        service = PulseService.build(provider=MockProvider() if mock else None)
        await service.start(run_scheduler=False)
        try:
            results = await service.pipeline.run_cycle(trigger="manual")
            return {
                "sources": [s.to_dict() for s in service.cache.get_all()],
                "stats": service.pipeline.aggregate_stats(),
                "failed": [r.source_id for r in results if r.error is not None],
            }
        finally:
            await service.stop()

    output = asyncio.run(run())
    click.echo(json.dumps(output, indent=2 if pretty else None, default=str))
    if output["failed"]:
        click.echo(
            click.style(f"Failed sources: {', '.join(output['failed'])}", fg="yellow"),
            err=True,
        )


@main.command()
def sources() -> None:
    """List registry entries."""
    from community_pulse.registry.service import SourceRegistry

    registry = SourceRegistry.from_json()
    click.echo(f"\n{len(registry)} sources:")
    click.echo("-" * 60)
    for descriptor in registry:
        visibility = click.style(
            descriptor.visibility,
            fg="yellow" if descriptor.is_private else "green",
        )
        reference = "yes" if descriptor.has_reference else "no"
        click.echo(
            f"  {descriptor.id:<24} {descriptor.display_name:<28} "
            f"{visibility} (reference: {reference})"
        )
    click.echo("-" * 60)


@main.command()
def health() -> None:
    """Check provider configuration and upstream reachability."""
    import structlog

    from community_pulse.service import PulseService

    logger = structlog.get_logger()

    async def check() -> dict[str, bool]:
        results: dict[str, bool] = {}
        settings = get_settings()

        results["registry_loaded"] = False
        try:
            service = PulseService.build(settings)
            results["registry_loaded"] = len(service.registry) > 0
        except Exception as e:
            logger.error("Registry load failed", error=str(e))
            return results

        results["provider_configured"] = service.provider.configured
        if settings.provider == "discord":
            results["discord_token_set"] = settings.discord_configured

        results["upstream_reachable"] = False
        probe = next((d for d in service.registry if d.has_reference), None)
        if probe is not None and service.provider.configured:
            await service.provider.start()
            try:
                fetched = await service.pipeline.refresh_source(probe.id)
                results["upstream_reachable"] = fetched.error is None
            except Exception as e:
                logger.error("Upstream probe failed", source_id=probe.id, error=str(e))
            finally:
                await service.provider.close()
        return results

    results = asyncio.run(check())

    click.echo("\nHealth Check Results:")
    click.echo("-" * 40)

    all_healthy = True
    for name, status in results.items():
        icon = "✓" if status else "✗"
        color = "green" if status else "red"
        click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
        if not status:
            all_healthy = False

    click.echo("-" * 40)

    if all_healthy:
        click.echo(click.style("All checks passed!", fg="green"))
        sys.exit(0)
    else:
        click.echo(click.style("Some checks failed!", fg="red"))
        sys.exit(1)


if __name__ == "__main__":
    main()
