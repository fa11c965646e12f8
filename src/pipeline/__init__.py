"""Weekly report pipeline: request validation, orchestration and HTTP surface."""
