"""
Tests for building a SimulationRun from YAML configuration.
"""

import pytest
from pathlib import Path

from NuMass.core.config import ConfigurationError, M_TRITIUM, M_HELIUM3
from NuMass.core.units import q_from_mass_difference
from NuMass.workflows.run_construction import load_config, create_run_from_config, DEFAULT_BASENAME

CONFIG_FILE = Path(__file__).parent.parent.parent / "configs" / "tritium_katrin.yaml"


class TestCreateRun:

    def test_shipped_config(self):
        """The example configuration maps onto the dataclasses."""
        run = create_run_from_config(load_config(CONFIG_FILE))
        assert run.run_id == "tritium_katrin"
        assert run.physics.Q == 18590.0
        assert run.sampling.envelope_h == pytest.approx(2e-5)
        assert run.sampling.window(run.physics).limit == pytest.approx(18565.0)
        assert run.fit.m_nu_bounds == (0.0, 2.0)
        assert run.fit.histograms == ("E_e", "E_e_sm")
        assert run.basename == "b_decay_histo"

    def test_defaults_from_empty_config(self):
        run = create_run_from_config({})
        assert run.basename == DEFAULT_BASENAME
        assert run.output_dir == Path(".")
        assert run.sampling.smear_policy == "fill"

    def test_overrides(self):
        run = create_run_from_config({"sampling": {"seed": 1}}, seed=99, basename="other")
        assert run.sampling.seed == 99
        assert run.basename == "other"

    def test_mass_difference_Q(self):
        run = create_run_from_config({"physics": {"q_source": "mass_difference"}})
        assert run.physics.Q == pytest.approx(q_from_mass_difference(M_TRITIUM, M_HELIUM3))
        assert run.physics.q_source == "mass_difference"

    def test_mass_difference_with_explicit_Q(self):
        with pytest.raises(ConfigurationError):
            create_run_from_config({"physics": {"q_source": "mass_difference", "Q": 18590.0}})

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match="n_event"):
            create_run_from_config({"sampling": {"n_event": 10}})

    def test_invalid_value(self):
        with pytest.raises(ConfigurationError):
            create_run_from_config({"physics": {"charge": 0}})

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("run_id: t\nsampling:\n  n_events: 10\n  smear_policy: window\n"
                        "output:\n  output_dir: out\n  basename: h\n")
        run = create_run_from_config(load_config(path))
        assert run.sampling.n_events == 10
        assert run.sampling.smear_policy == "window"
        assert run.container == Path("out") / "h"
