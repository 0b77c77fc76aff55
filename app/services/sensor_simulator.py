"""
GreenPulse Sensor Simulator Service
Mock device that posts realistic hydroponic readings to the ingestion endpoint
"""

import asyncio
import aiohttp
import math
import random
import time
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class SimulationScenario(Enum):
    """Different simulation scenarios"""
    NORMAL = "normal"
    PH_DRIFT = "ph_drift"
    HEAT_WAVE = "heat_wave"
    SENSOR_FAULT = "sensor_fault"


@dataclass
class SensorConfig:
    """Configuration for one simulated probe"""
    field: str
    base_value: float
    variation: float
    min_value: float
    max_value: Optional[float] = None
    decimals: int = 2
    daily_amplitude: float = 0.0  # Swing over a 24h cycle


DEFAULT_SENSORS = {
    "ph_value": SensorConfig("ph_value", 6.8, 0.3, 0.0, 14.0),
    "ec_value": SensorConfig("ec_value", 1.8, 0.2, 0.0),
    "water_temperature_c": SensorConfig("water_temperature_c", 24.0, 2.0, -5.0, 50.0, decimals=1, daily_amplitude=1.0),
    "air_temperature_c": SensorConfig("air_temperature_c", 28.0, 3.0, -5.0, 60.0, decimals=1, daily_amplitude=4.0),
    "air_humidity": SensorConfig("air_humidity", 65.0, 5.0, 0.0, 100.0, decimals=1),
    "light_intensity": SensorConfig("light_intensity", 5000.0, 1000.0, 0.0, decimals=0, daily_amplitude=800.0),
}


class GreenPulseSensorSimulator:
    """
    Simulates one GreenPulse device

    Usage:
        async with GreenPulseSensorSimulator(url, device_id) as simulator:
            await simulator.run_simulation(duration_seconds=300, interval_seconds=15)
    """

    def __init__(
        self,
        base_url: str,
        device_id: str,
        api_prefix: str = "/api/v1",
        rng: Optional[random.Random] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.device_id = device_id
        self.api_prefix = api_prefix
        self.rng = rng or random.Random()
        self.sensors = dict(DEFAULT_SENSORS)
        self.session = None
        self.simulation_start_time = None
        self.readings_sent = 0
        self.successful_readings = 0
        self.current_scenario = SimulationScenario.NORMAL
        self.scenario_start_time = None

    async def __aenter__(self):
        timeout = aiohttp.ClientTimeout(total=30)
        self.session = aiohttp.ClientSession(timeout=timeout)
        self.simulation_start_time = time.time()
        logger.info(f"Initialized sensor simulator for device {self.device_id}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
        elapsed = time.time() - self.simulation_start_time if self.simulation_start_time else 0
        logger.info(
            f"Simulation completed. Duration: {elapsed:.1f}s, "
            f"Success rate: {self.successful_readings}/{self.readings_sent}"
        )

    @property
    def ingest_url(self) -> str:
        return f"{self.base_url}{self.api_prefix}/sensor-data/"

    def set_scenario(self, scenario: SimulationScenario):
        self.current_scenario = scenario
        self.scenario_start_time = time.time()
        logger.info(f"Scenario changed to: {scenario.value}")

    def _scenario_offset(self, field: str, scenario_elapsed: float) -> float:
        if self.current_scenario == SimulationScenario.PH_DRIFT and field == "ph_value":
            # Acid creep: about one pH unit per 10 minutes, capped at 2.5
            return -min(2.5, scenario_elapsed / 600)

        if self.current_scenario == SimulationScenario.HEAT_WAVE:
            ramp = min(1.0, scenario_elapsed / 300)
            if field == "air_temperature_c":
                return 12.0 * ramp
            if field == "water_temperature_c":
                return 6.0 * ramp
            if field == "air_humidity":
                return -20.0 * ramp

        return 0.0

    def _generate_value(self, config: SensorConfig, elapsed: float, scenario_elapsed: float) -> float:
        daily_phase = (elapsed / 3600 % 24) / 24 * 2 * math.pi
        value = config.base_value + config.daily_amplitude * math.sin(daily_phase - math.pi / 2)
        value += (self.rng.random() - 0.5) * config.variation
        value += self._scenario_offset(config.field, scenario_elapsed)

        value = max(config.min_value, value)
        if config.max_value is not None:
            value = min(config.max_value, value)

        return round(value, config.decimals) if config.decimals else float(round(value))

    def generate_reading(self, elapsed: Optional[float] = None, scenario_elapsed: Optional[float] = None) -> Dict[str, Any]:
        """
        Build one reading payload

        TDS is left out so the backend derives it from EC. The sensor_fault
        scenario randomly blanks or corrupts a probe.
        """
        if elapsed is None:
            elapsed = time.time() - self.simulation_start_time if self.simulation_start_time else 0.0
        if scenario_elapsed is None:
            scenario_elapsed = time.time() - self.scenario_start_time if self.scenario_start_time else elapsed

        reading: Dict[str, Any] = {
            "device_id": self.device_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        for field, config in self.sensors.items():
            reading[field] = self._generate_value(config, elapsed, scenario_elapsed)

        if self.current_scenario == SimulationScenario.SENSOR_FAULT:
            fault = self.rng.choice(["dropout", "garbage", "spike"])
            probe = self.rng.choice(["ph_value", "ec_value", "water_temperature_c"])
            if fault == "dropout":
                reading.pop(probe)
            elif fault == "garbage":
                reading[probe] = "ERR"
            else:
                reading[probe] = -1.0

        return reading

    async def send_reading(self, reading: Dict[str, Any]) -> bool:
        """Send a sensor reading to the API"""
        try:
            async with self.session.post(self.ingest_url, json=reading) as response:
                self.readings_sent += 1

                if response.status == 201:
                    result = await response.json()
                    self.successful_readings += 1
                    data = result.get("data", {})
                    logger.info(
                        f"Reading {self.readings_sent}: {data.get('quality_flag')} - "
                        f"pH:{reading.get('ph_value')} "
                        f"EC:{reading.get('ec_value')} "
                        f"Air:{reading.get('air_temperature_c')}°C "
                        f"[{self.current_scenario.value}]"
                    )
                    return True

                error_text = await response.text()
                logger.error(f"HTTP {response.status}: {error_text}")
                return False

        except aiohttp.ClientError as e:
            self.readings_sent += 1
            logger.error(f"Error sending reading: {e}")
            return False

    async def run_simulation(self, duration_seconds: int, interval_seconds: int):
        """Send readings every interval until the duration is over"""
        logger.info(f"Starting sensor simulation against {self.ingest_url}")
        logger.info(f"Device: {self.device_id}, duration: {duration_seconds}s, interval: {interval_seconds}s")

        if self.scenario_start_time is None:
            self.scenario_start_time = time.time()

        end_time = time.time() + duration_seconds
        while time.time() < end_time:
            await self.send_reading(self.generate_reading())

            if self.readings_sent and self.readings_sent % 20 == 0:
                elapsed = time.time() - self.simulation_start_time
                progress = (elapsed / duration_seconds) * 100
                logger.info(f"Progress: {progress:5.1f}% ({self.readings_sent} readings)")

            await asyncio.sleep(interval_seconds)

        if self.readings_sent > 0:
            logger.info(f"Success rate: {(self.successful_readings / self.readings_sent) * 100:.1f}%")
