# test_imports.py
import falcon_cost


def test_package_imports():
    assert falcon_cost.__version__


def test_public_sdk_imports():
    from falcon_cost.sdk import CostTracker, FalPricingClient, add_generation, load_history

    assert callable(add_generation)
    assert callable(load_history)
    assert CostTracker.__name__ == "CostTracker"
    assert FalPricingClient.__name__ == "FalPricingClient"
