"""
Russian Housing Price Network

Sale price regression for the Sberbank Russian housing market with:
- Record-level CSV loading (missing marker kept intact)
- Pure feature-engineering stages (date offsets, one-hot, yes/no flags, mean imputation)
- Shuffled, infinitely repeating epoch stream
- Feed-forward PyTorch network with dropout
"""

__version__ = "1.0.0"
