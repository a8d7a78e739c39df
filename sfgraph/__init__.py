"""sfgraph - Salesforce metadata relationship graphs and their layouts."""

__version__ = "0.1.0"
