from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from pathlib import Path

import dotenv
import uvloop

from dsc_bridge.bridge import DscBridge
from dsc_bridge.const import DSC_VERSION
from dsc_bridge.correlation import trace_scope
from dsc_bridge.logging_abstraction import get_logger, set_package_level
from dsc_bridge.metrics import start_metrics_server
from dsc_bridge.mqtt.client import MQTTClient
from dsc_bridge.panel.simulator import SimulatedKeybus, load_scenario
from dsc_bridge.structs import BridgeEnv
from dsc_bridge.topics import TopicSet

logger = get_logger(__name__)

# Suppress verbose MQTT library warnings
mqtt_logger = logging.getLogger("mqtt")
mqtt_logger.setLevel(logging.ERROR)
mqtt_logger.propagate = False


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="DSC Keybus MQTT bridge")

    parser.add_argument(
        "-D",
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )
    _ = parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    _ = parser.add_argument(
        "--scenario",
        help="YAML file with the simulated panel's initial state",
        default=None,
        type=Path,
    )
    args = parser.parse_args(argv)

    if args.debug:
        set_package_level(logging.DEBUG)
        logger.info("Debug mode enabled via CLI argument")

    if args.env:
        load_env_file(args.env)
    return args


def load_env_file(path: Path) -> bool:
    """Load a dotenv file into ``os.environ``, overriding existing values."""
    env_path = path.expanduser().resolve()
    if not env_path.exists():
        logger.error(
            "Environment file not found",
            extra={"path": str(env_path)},
        )
        return False
    loaded_any = dotenv.load_dotenv(env_path, override=True)
    if loaded_any:
        logger.info(
            " Environment variables loaded",
            extra={"source": str(env_path)},
        )
    else:
        logger.warning(
            "No environment variables loaded from file",
            extra={"path": str(env_path)},
        )
    return loaded_any


def build_bridge(env: BridgeEnv, scenario: Path | None = None) -> DscBridge:
    """Wire the decoder, the MQTT client and the loop for one panel."""
    topics = TopicSet(env.topic)
    if scenario is not None:
        logger.info(" Loading panel scenario", extra={"scenario_path": str(scenario)})
        decoder = SimulatedKeybus.from_scenario(load_scenario(scenario), access_code=env.access_code)
    else:
        decoder = SimulatedKeybus(access_code=env.access_code)
    client = MQTTClient(env, topics)
    return DscBridge(env, decoder, client, topics)


async def run_bridge(bridge: DscBridge) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, bridge.stop)
    logger.debug("Signal handlers configured for SIGINT & SIGTERM")
    await bridge.run()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the DSC bridge."""
    with trace_scope("main"):
        logger.info(
            "Starting DSC Keybus bridge",
            extra={"version": DSC_VERSION},
        )

        args = parse_cli(argv)

        env = BridgeEnv.from_environ()
        if env.debug:
            logger.info("Debug logging enabled via configuration")
            set_package_level(logging.DEBUG)

        if env.metrics_port > 0:
            start_metrics_server(env.metrics_port)
            logger.info(" Metrics server started", extra={"port": env.metrics_port})

        bridge = build_bridge(env, args.scenario)
        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

        try:
            asyncio.run(run_bridge(bridge))
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
        except Exception as e:
            logger.exception(
                " Fatal error in main loop",
                extra={"error": str(e)},
            )
        else:
            logger.info(" DSC bridge stopped gracefully")


if __name__ == "__main__":
    main()
