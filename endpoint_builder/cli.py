#!/usr/bin/env python3
"""
Build API Gateway endpoints from a populated project file.

Usage: build-endpoints project.yaml [--path PATH ...] [--method METHOD]
                                    [--stage STAGE] [--region REGION]
"""

import argparse
import logging
import sys
from typing import List, Optional

import boto3

from .builder import EndpointBuilder
from .config import Settings, configure_logging, load_settings
from .errors import APIGATEWAY, ConfigurationError, LAMBDA
from .retry import RetryingClient
from .runner import build_endpoints
from .state import AwsStateProvider, Project, load_project

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Provision API Gateway endpoints backed by Lambda functions')
    parser.add_argument('project_file',
                        help='Path to the populated project YAML file')
    parser.add_argument('--path', action='append', dest='paths',
                        help='Endpoint path to build (repeatable, default: all)')
    parser.add_argument('--method',
                        help='Only build endpoints with this HTTP method')
    parser.add_argument('--stage', help='Deployment stage')
    parser.add_argument('--region', help='AWS region')
    parser.add_argument('--alias',
                        help='Lambda alias for the integration '
                             '(default: ${stageVariables.functionAlias})')
    parser.add_argument('--max-workers', type=int,
                        help='Number of endpoints built concurrently')
    parser.add_argument('--log-level', help='Logging level (default: INFO)')
    return parser.parse_args(argv)


def create_builder(settings: Settings, project: Project) -> EndpointBuilder:
    """Create AWS clients for the configured region and wire the builder."""
    retry_options = dict(
        max_attempts=settings.max_attempts,
        base_delay=settings.base_delay,
        max_delay=settings.max_delay,
    )
    apigateway = RetryingClient(
        boto3.client('apigateway', region_name=settings.region),
        APIGATEWAY, **retry_options)
    lambda_client = RetryingClient(
        boto3.client('lambda', region_name=settings.region),
        LAMBDA, **retry_options)
    state = AwsStateProvider(apigateway, lambda_client, project)
    return EndpointBuilder(state, apigateway, lambda_client)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        settings = load_settings().override(
            stage=args.stage,
            region=args.region,
            max_workers=args.max_workers,
            log_level=args.log_level,
        )
        configure_logging(settings.log_level)
        project = load_project(args.project_file)
        builder = create_builder(settings, project)
        endpoints = builder.state.get_endpoints_by_path(args.paths, args.method)
        requests = project.build_requests(
            settings.stage, settings.region, endpoints, alias=args.alias)
    except ConfigurationError as e:
        configure_logging()
        logger.error(f"❌ {e}")
        return 1

    if not requests:
        logger.error("❌ No endpoints matched the given paths/method")
        return 1

    logger.info(f"🚀 Building {len(requests)} endpoint(s)")
    logger.info(f"Region: {settings.region}")
    logger.info(f"Stage: {settings.stage}")

    summary = build_endpoints(builder, requests, settings.max_workers)

    for result in summary.results:
        logger.info(f"✅ {result.endpoint} → {result.url}")
        print(result.url)

    if summary.failures:
        logger.error("Failed endpoints:")
        for failure in summary.failures:
            logger.error(f"  - {failure}")
        return 1

    logger.info("🎉 All endpoints built successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
