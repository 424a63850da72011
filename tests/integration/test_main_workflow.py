"""
End-to-end run of the command line workflow on a synthetic catchment.
"""

import textwrap

import numpy as np
import pandas as pd
import pytest

from abcd_model.data.config_loader import load_config
from abcd_model.data.dataset_loader import DatasetLoader
from abcd_model.main import load_discharge, load_forcing, main, run
from abcd_model.models.exceptions import ForcingError

AREA_KM2 = 250.0


@pytest.fixture
def project(tmp_path, monthly_frame, observed):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    forcing = monthly_frame.rename(columns={"datetime": "Date", "P": "PRCP", "T": "TAVE"})
    forcing.to_csv(data_dir / "forcing.csv", index=False)
    pd.DataFrame({"Date": monthly_frame["datetime"], "Flow": observed}).to_csv(data_dir / "flow.csv", index=False)
    return tmp_path


def write_config(root, method="evolutionary", discharge_units="mm", extra=""):
    body = f"""
    general:
      basin_name: Synthetic
      output_directory: outputs
      area_km2: {AREA_KM2}
      latitude: 42.0
    data_sources:
      forcing:
        path: data/forcing.csv
        datetime_aliases: [date]
        precipitation_aliases: [prcp]
        temperature_aliases: [tave]
      discharge:
        path: data/flow.csv
        units: {discharge_units}
    initial_state: {{S: 150, G: 20, A: 0}}
    calibration:
      method: {method}
      max_iterations: 3
      population_size: 8
      random_seed: 4
    {extra}
    """
    path = root / "config.yaml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


class TestWorkflow:
    def test_cli_writes_outputs(self, project):
        main([str(write_config(project)), "--iterations", "2"])
        outputs = project / "outputs"
        params = pd.read_csv(outputs / "calibrated_parameters.csv")
        assert list(params.columns) == ["basin", "a", "b", "c", "d", "e", "Tm", "loss"]
        metrics = pd.read_csv(outputs / "metrics.csv")
        assert set(metrics.columns) == {"RMSE", "NSE", "KGE"}
        trajectory = pd.read_csv(outputs / "trajectory.csv")
        assert len(trajectory) == 97
        assert "observed" in trajectory.columns

    def test_run_with_sceua(self, project):
        config = load_config(write_config(project, method="sceua"))
        result = run(config)
        assert result.trajectory.streamflow.size == 96
        assert result.optimization.n_iterations <= 3

    def test_pet_computed_when_missing(self, project):
        df = pd.read_csv(project / "data" / "forcing.csv").drop(columns=["PET"])
        df["tmin"] = df["TAVE"] - 5.0
        df["tmax"] = df["TAVE"] + 5.0
        df.to_csv(project / "data" / "forcing.csv", index=False)
        config = load_config(write_config(project))
        forcing = load_forcing(config, DatasetLoader(config.data_root))
        assert list(forcing.columns) == ["datetime", "P", "T", "PET"]
        assert (forcing["PET"] > 0).all()

    def test_cfs_discharge_converted(self, project):
        config = load_config(write_config(project, discharge_units="cfs"))
        discharge = load_discharge(config, DatasetLoader(config.data_root))
        raw = pd.read_csv(project / "data" / "flow.csv")
        days = pd.to_datetime(raw["Date"]).dt.days_in_month.to_numpy()
        expected = raw["Flow"].to_numpy() * 0.028316846592 * 86400 * days / 1e6 * 1e3 / AREA_KM2
        np.testing.assert_allclose(discharge["flow"].to_numpy(), expected)

    def test_gap_in_observations_rejected(self, project):
        flow = pd.read_csv(project / "data" / "flow.csv").drop(index=40)
        flow.to_csv(project / "data" / "flow.csv", index=False)
        config = load_config(write_config(project))
        with pytest.raises(ForcingError):
            run(config)
