"""Runtime layer: retry, circuit breaking, pipeline layers, assembly and commands."""
