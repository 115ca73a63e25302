"""Web and command-line front end for multivariate statistics on tabular datasets."""
