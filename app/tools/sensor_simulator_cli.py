"""
Command-line sensor simulator tool
Usage: python -m app.tools.sensor_simulator_cli --device-id GREENPULSE-V1-... --help
"""

import argparse
import asyncio
import logging
import sys

from app.services.sensor_simulator import GreenPulseSensorSimulator, SimulationScenario


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='GreenPulse Sensor Simulator CLI')

    # Basic configuration
    parser.add_argument('--url', default='http://127.0.0.1:3000', help='API base URL')
    parser.add_argument('--api-prefix', default='/api/v1', help='API route prefix')
    parser.add_argument('--device-id', required=True, help='External device identifier')

    # Simulation parameters
    parser.add_argument('--duration', type=int, default=300, help='Simulation duration (seconds)')
    parser.add_argument('--interval', type=int, default=15, help='Reading interval (seconds)')
    parser.add_argument('--scenario', choices=[s.value for s in SimulationScenario],
                        default=SimulationScenario.NORMAL.value, help='Simulation scenario')

    # Output options
    parser.add_argument('--quiet', action='store_true', help='Suppress output except errors')
    parser.add_argument('--log-file', help='Also log output to file')

    return parser


async def main(argv=None):
    args = build_parser().parse_args(argv)

    # Configure logging
    handlers = [logging.StreamHandler(sys.stdout)]
    if args.log_file:
        handlers.append(logging.FileHandler(args.log_file))
    logging.basicConfig(
        level=logging.ERROR if args.quiet else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )

    simulator = GreenPulseSensorSimulator(
        base_url=args.url,
        device_id=args.device_id.strip().upper(),
        api_prefix=args.api_prefix,
    )
    simulator.set_scenario(SimulationScenario(args.scenario))

    try:
        async with simulator:
            await simulator.run_simulation(args.duration, args.interval)
    except KeyboardInterrupt:
        print("\nSimulation interrupted by user")


if __name__ == "__main__":
    asyncio.run(main())
