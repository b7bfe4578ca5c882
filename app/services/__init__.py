# Services layer: Yampi gateways, SKU cache, quoting pipeline
