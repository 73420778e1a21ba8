"""渠道适配器 / Channel adapters."""
