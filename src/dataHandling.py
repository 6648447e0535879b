# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import csv, logging
import os, json, shutil, zipfile
from config import Config

logger = logging.getLogger("sim.data")

DEVICE_FIELDS = ["time", "uid", "x", "y", "speed", "offset", "node_color", "node_size", "node_shape", "consistency"]
AGGREGATE_FIELDS = ["time", "devices", "consistency"]

def create_config_folder(config_elem: Config) -> str:
    """Create the next free `config_folder_N` under the results base path."""
    results_cfg = config_elem.results or {}
    base_path = results_cfg.get("base_path") or "../data/"
    abs_base_path = os.path.join(os.path.abspath(""), base_path)
    os.makedirs(abs_base_path, exist_ok=True)
    existing = [d for d in os.listdir(abs_base_path) if d.startswith("config_folder_")]
    config_folder = os.path.join(abs_base_path, f"config_folder_{len(existing)}")
    if os.path.exists(config_folder):
        raise Exception(f"Error config folder {config_folder} already present")
    os.mkdir(config_folder)
    with open(os.path.join(config_folder, "config.json"), "w") as f:
        json.dump(config_elem.data, f, indent=4, default=str)
    return config_folder

class DataHandling():
    """
    Storage sink for device attributes and per-round aggregates.

    Every run gets a `run_N` folder holding `aggregates.csv` (mean
    consistency per round) and, unless disabled, `devices.csv` with one
    row per device and snapshot. The folder is zipped when the run closes.
    """
    def __init__(self, config_elem: Config, config_folder: str = None):
        """Initialize the instance."""
        results_cfg = config_elem.results or {}
        self.dump_devices = bool(results_cfg.get("devices", True))
        self.plot_enabled = bool(results_cfg.get("plot", False))
        self.archive_enabled = bool(results_cfg.get("archive", True))
        self.snapshot_every = self._parse_snapshot_every(results_cfg.get("snapshot_every", 1))
        self.config_folder = config_folder or create_config_folder(config_elem)
        self.run_folder = None
        self._run = None
        self._rows = 0
        self._series = []
        self._devices_file = None
        self._devices_writer = None

    def _parse_snapshot_every(self, value):
        """Return a valid snapshot interval in rounds."""
        try:
            every = int(value)
        except (TypeError, ValueError):
            every = 1
        return max(1, every)

    def new_run(self, run: int):
        """Create a new run."""
        self.run_folder = os.path.join(self.config_folder, f"run_{run}")
        if os.path.exists(self.run_folder):
            raise Exception(f"Error run folder {self.run_folder} already present")
        os.mkdir(self.run_folder)
        self._run = run
        self._rows = 0
        self._series = []
        if self.dump_devices:
            self._devices_file = open(os.path.join(self.run_folder, "devices.csv"), "w", newline="")

    def _device_writer(self, snapshots: list):
        """Create the devices CSV writer; extra storage keys (e.g. monitor verdicts) become columns."""
        if self._devices_writer is None:
            fields = list(DEVICE_FIELDS)
            for snapshot in snapshots:
                fields.extend(k for k in snapshot if k not in fields and k != "debug")
            self._devices_writer = csv.DictWriter(self._devices_file, fieldnames=fields, extrasaction="ignore")
            self._devices_writer.writeheader()
        return self._devices_writer

    def save(self, record: dict, snapshots: list, force: bool = False):
        """Store the aggregate of a round and, on snapshot rounds, the device attributes."""
        self._series.append(dict(record))
        capture = force or self._rows % self.snapshot_every == 0
        self._rows += 1
        if not capture or self._devices_file is None or not snapshots:
            return
        writer = self._device_writer(snapshots)
        for snapshot in snapshots:
            row = dict(snapshot)
            row["time"] = record["time"]
            writer.writerow(row)

    def close(self):
        """Write the aggregates, plot them if requested and archive the run."""
        if self.run_folder is None:
            return
        if self._devices_file is not None:
            self._devices_file.close()
            self._devices_file = None
            self._devices_writer = None
        with open(os.path.join(self.run_folder, "aggregates.csv"), "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=AGGREGATE_FIELDS, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(self._series)
        if self.plot_enabled and self._series:
            self._plot_consistency()
        logger.info("Run %s results stored in %s", self._run, self.run_folder)
        if self.archive_enabled:
            self._archive_run_folder()
        self.run_folder = None

    def _plot_consistency(self):
        """Save the mean consistency over time as a PNG next to the CSV files."""
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        times = [r["time"] for r in self._series]
        values = [r["consistency"] for r in self._series]
        fig, ax = plt.subplots(figsize=(8, 4))
        ax.plot(times, values, color="tab:green")
        ax.set_xlabel("time (s)")
        ax.set_ylabel("mean consistency")
        ax.set_ylim(-0.05, 1.05)
        ax.set_title(f"Consistency monitor, run {self._run}")
        fig.tight_layout()
        fig.savefig(os.path.join(self.run_folder, "consistency.png"))
        plt.close(fig)

    def _archive_run_folder(self):
        """Compress the current run folder and remove its original contents."""
        if self.run_folder is None or not os.path.isdir(self.run_folder):
            return
        zip_path = f"{self.run_folder}.zip"
        if os.path.exists(zip_path):
            os.remove(zip_path)
        base_dir = os.path.dirname(self.run_folder)
        with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            for root, _, files in os.walk(self.run_folder):
                for filename in files:
                    abs_path = os.path.join(root, filename)
                    arcname = os.path.relpath(abs_path, base_dir)
                    zf.write(abs_path, arcname)
        shutil.rmtree(self.run_folder)
