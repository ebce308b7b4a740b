#!/usr/bin/env python3
"""
Example script demonstrating the usage of DataclassFlags.

This script shows how to annotate dataclass fields with flag declarations
and bind them to command-line flags. Try:

    python basic_example.py --runs 5 --timeout 1m30s --verbose
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from dataclass_flags import DataclassFlags, Uint


@dataclass
class SimulationConfig:
    """Configuration for simulation parameters."""

    name: str = field(default="", metadata={"flag": "name,baseline,Name of the simulation"})
    temperature: float = field(
        default=0.0, metadata={"flag": "temperature,27.0,Temperature in Celsius"}
    )
    runs: int = field(default=0, metadata={"flag": "runs,100,Number of simulations to run"})
    verbose: bool = field(default=False, metadata={"flag": "verbose,,Enable verbose output"})


@dataclass
class ProcessConfig:
    """Configuration for process parameters."""

    workers: Uint = field(default=0, metadata={"flag": "workers,4,Maximum number of workers"})
    timeout: timedelta = field(
        default=timedelta(0), metadata={"flag": "timeout,5m,Process timeout"}
    )


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    process: ProcessConfig = field(default_factory=ProcessConfig)
    # Preset values are kept unless the flag is given on the command line.
    output_dir: str = field(
        default="/tmp/output", metadata={"flag": "output-dir,,Output directory path"}
    )


def main() -> None:
    """Main function demonstrating the flags."""
    config = AppConfig()
    DataclassFlags(config, prog="simulate").parse()

    if config.simulation.verbose:
        logging.basicConfig(level=logging.DEBUG)

    print("Parsed Configuration:")
    print("-" * 30)
    print(f"Simulation Name: {config.simulation.name}")
    print(f"Temperature: {config.simulation.temperature}°C")
    print(f"Number of Simulations: {config.simulation.runs}")
    print(f"Output Directory: {config.output_dir}")
    print(f"Max Workers: {config.process.workers}")
    print(f"Timeout: {config.process.timeout}")


if __name__ == "__main__":
    main()
