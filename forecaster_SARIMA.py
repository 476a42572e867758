#!/usr/bin/env python3
"""
Box-Jenkins SARIMA modelling and forecasting of a monthly series.

Usage
-----
    python forecaster_SARIMA.py --help
    python forecaster_SARIMA.py --series-csv data/retail_sales.csv
    python forecaster_SARIMA.py --series-csv data/retail_sales.csv \
        --candidates "(1,2,1)x(0,0,1)12" "(0,1,1)x(0,1,1)12" --horizons 12,24 --figures

Package Structure
-----------------
- sarima_forecaster_src/: transforms, model fitting, forecasting, CLI workflow
- diagnostics/: stability gate, residual tests, spectral analysis
- validation/: input series checks and fingerprints
- helpers/: monthly calendar utilities
- config/: YAML configuration (default.yaml)
"""

import sys

from sarima_forecaster_src.main import main

if __name__ == "__main__":
    sys.exit(main())
