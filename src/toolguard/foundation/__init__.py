"""Foundation layer: errors, configuration, core handler abstractions, testing aids."""
