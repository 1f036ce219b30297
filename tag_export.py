#!/usr/bin/env python3
"""
Azure Tag Export - CLI for exporting resource tags to one CSV file per resource type.
"""

import sys
import logging
import time
from datetime import datetime, timezone
from typing import Optional

import click
from tqdm import tqdm

from azure_client import AzureClient, AzureClientError, AuthenticationError, authenticate
from collector import TagCollector
from export import CSVExporter


def setup_logging(verbose: bool):
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # The SDK logs every HTTP request at INFO
    logging.getLogger('azure').setLevel(logging.DEBUG if verbose else logging.WARNING)


def validate_options(resource_type: Optional[str], all_resource_types: bool,
                     resource_name: Optional[str], resource_group_name: Optional[str]):
    """Reject option combinations that cannot run"""
    if all_resource_types and resource_type:
        raise click.UsageError("Use either --resource-type or --all-resource-types, not both")
    if not all_resource_types and not resource_type:
        raise click.UsageError("--resource-type is required unless --all-resource-types is set")
    if resource_name and all_resource_types:
        raise click.UsageError("--resource-name cannot be combined with --all-resource-types")
    if resource_name and not resource_group_name:
        raise click.UsageError("--resource-name requires --resource-group-name")


def export_resource_type(collector: TagCollector, exporter: CSVExporter, resource_type: str,
                         resource_name: Optional[str] = None,
                         resource_group_name: Optional[str] = None) -> dict:
    """
    Run one collect-and-write pass. Returns counters for the run summary.
    """
    logger = logging.getLogger(__name__)
    stats = {'files': 0, 'rows': 0, 'write_failures': 0}

    result = collector.collect(resource_type, resource_name, resource_group_name)
    if result.not_found:
        logger.info(f"{resource_type}: nothing found in {len(result.not_found)} subscription(s)")
    if result.failed:
        logger.warning(f"{resource_type}: query failed in {len(result.failed)} subscription(s)")

    try:
        path = exporter.export_records(resource_type, result.records, datetime.now(timezone.utc))
    except FileExistsError as e:
        logger.error(f"Refusing to overwrite existing export for {resource_type}: {e.filename}")
        stats['write_failures'] += 1
        return stats
    except OSError as e:
        logger.error(f"Failed to write export for {resource_type}: {e}")
        stats['write_failures'] += 1
        return stats

    if path:
        logger.info(f"Wrote {len(result.records)} row(s), {len(result.tag_keys)} tag column(s) to {path}")
        stats['files'] += 1
        stats['rows'] += len(result.records)
    return stats


@click.command()
@click.option('--subscription-id', envvar='AZURE_SUBSCRIPTION_ID',
              help='Only export from this subscription (or set AZURE_SUBSCRIPTION_ID env var)')
@click.option('--resource-group-name',
              help='Resource group of the resource given with --resource-name')
@click.option('--resource-name',
              help='Export a single resource (requires --resource-group-name)')
@click.option('--tenant-id', envvar='AZURE_TENANT_ID',
              help='Tenant ID for sign-in (or set AZURE_TENANT_ID env var)')
@click.option('--client-id', envvar='AZURE_CLIENT_ID',
              help='Service principal client ID (or set AZURE_CLIENT_ID env var)')
@click.option('--client-secret', envvar='AZURE_CLIENT_SECRET',
              help='Service principal secret (or set AZURE_CLIENT_SECRET env var)')
@click.option('--all-resource-types', is_flag=True,
              help='Export every resource type of every registered provider')
@click.option('--resource-type',
              help='Resource type to export, e.g. Microsoft.Compute/virtualMachines')
@click.option('--output-dir', default='.', type=click.Path(file_okay=False),
              help='Directory for the CSV files (default: current directory)')
@click.option('--verbose', is_flag=True,
              help='Enable verbose logging')
def main(subscription_id: Optional[str], resource_group_name: Optional[str],
         resource_name: Optional[str], tenant_id: Optional[str], client_id: Optional[str],
         client_secret: Optional[str], all_resource_types: bool, resource_type: Optional[str],
         output_dir: str, verbose: bool):
    """
    Azure Tag Export - Write the tags of Azure resources to CSV, one file per resource type.
    """
    validate_options(resource_type, all_resource_types, resource_name, resource_group_name)

    setup_logging(verbose)
    logger = logging.getLogger(__name__)
    start_time = time.time()

    logger.info("Starting Azure Tag Export")
    logger.info(f"Output directory: {output_dir}")
    if subscription_id:
        logger.info(f"Subscription: {subscription_id}")

    try:
        session = authenticate(tenant_id, client_id, client_secret)
    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        sys.exit(1)
    logger.info(f"Authenticated ({session.method}, tenant {session.tenant_id or 'default'})")

    client = AzureClient(session)
    try:
        subscriptions = client.resolve_subscriptions(subscription_id)
    except AzureClientError as e:
        logger.error(f"Tool failed: {e}")
        sys.exit(1)
    for sub in subscriptions:
        logger.info(f"Subscription {sub.display_name or '-'} ({sub.subscription_id}): {sub.state or 'unknown'}")

    collector = TagCollector(client, subscriptions)
    exporter = CSVExporter(output_dir)
    totals = {'types': 0, 'files': 0, 'rows': 0, 'write_failures': 0}

    if all_resource_types:
        try:
            resource_types = list(client.iter_resource_types(subscriptions[0].subscription_id))
        except AzureClientError as e:
            logger.error(f"Tool failed: {e}")
            sys.exit(1)
        logger.info(f"Exporting tags for {len(resource_types)} resource types")

        with tqdm(total=len(resource_types), desc="Exporting resource types", unit="type") as pbar:
            for rtype in resource_types:
                pbar.set_postfix({'type': rtype})
                stats = export_resource_type(collector, exporter, rtype)
                totals['types'] += 1
                for key, value in stats.items():
                    totals[key] += value
                pbar.update(1)
    else:
        stats = export_resource_type(collector, exporter, resource_type, resource_name, resource_group_name)
        totals['types'] += 1
        for key, value in stats.items():
            totals[key] += value

    total_time = time.time() - start_time
    logger.info(
        f"Azure Tag Export completed in {total_time:.2f} seconds: "
        f"{totals['types']} type(s), {totals['files']} file(s), {totals['rows']} row(s), "
        f"{totals['write_failures']} failed write(s)"
    )


if __name__ == '__main__':
    main()
