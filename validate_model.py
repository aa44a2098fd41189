"""
Model validation and sanity checks
"""
import numpy as np
from sklearn.metrics import r2_score, mean_absolute_error, mean_absolute_percentage_error

from russian_housing.config import DATA_FILE, DEFAULT_PARAMS
from russian_housing.dataset import HousingDataset
from russian_housing.model import load_model_artifact, predict

print("=" * 80)
print("MODEL VALIDATION & SANITY CHECKS")
print("=" * 80)

# Load model artifact
model = load_model_artifact(DEFAULT_PARAMS.checkpoint_path)

# Rebuild the dataset and the same held-out slice
dataset = HousingDataset(DATA_FILE, verbose=False)
print(f"\nTotal examples: {len(dataset):,}")

train_set, held_out = dataset.split(DEFAULT_PARAMS.test_size)
print(f"  Train:    {len(train_set):,}")
print(f"  Held-out: {len(held_out):,}")

# CHECK 1: Feature schema matches the artifact
print("\n" + "=" * 80)
print("CHECK 1: FEATURE SCHEMA")
print("=" * 80)

if dataset.feature_names != model.feature_names:
    missing = sorted(set(model.feature_names) - set(dataset.feature_names))
    extra = sorted(set(dataset.feature_names) - set(model.feature_names))
    print("\n❌ Feature order differs from the trained model")
    print(f"   Missing: {missing[:10]}")
    print(f"   Extra:   {extra[:10]}")
    raise SystemExit(1)
print(f"\n✓ {len(model.feature_names)} features in the trained order")

y_train = np.array([ex.label for ex in train_set])
y_test = np.array([ex.label for ex in held_out])

# CHECK 2: Baseline models
print("\n" + "=" * 80)
print("CHECK 2: BASELINE MODELS")
print("=" * 80)

global_median = np.median(y_train)
baseline_1 = np.full(len(y_test), global_median)
r2_1 = r2_score(y_test, baseline_1)
mae_1 = mean_absolute_error(y_test, baseline_1)
mape_1 = mean_absolute_percentage_error(y_test, baseline_1) * 100

print(f"\n1. Global Median Baseline:")
print(f"   Median: {global_median:,.0f}")
print(f"   R²: {r2_1:.4f}")
print(f"   MAE: {mae_1:,.0f}")
print(f"   MAPE: {mape_1:.2f}%")

global_mean = np.mean(y_train)
baseline_2 = np.full(len(y_test), global_mean)
r2_2 = r2_score(y_test, baseline_2)
mae_2 = mean_absolute_error(y_test, baseline_2)

print(f"\n2. Global Mean Baseline:")
print(f"   Mean: {global_mean:,.0f}")
print(f"   R²: {r2_2:.4f}")
print(f"   MAE: {mae_2:,.0f}")

# CHECK 3: Network vs best baseline
print("\n" + "=" * 80)
print("CHECK 3: NETWORK VS BEST BASELINE")
print("=" * 80)

y_pred = predict(model, np.stack([ex.features for ex in held_out]))
r2_model = r2_score(y_test, y_pred)
mae_model = mean_absolute_error(y_test, y_pred)

best_mae = min(mae_1, mae_2)
print(f"\nBest Baseline: MAE = {best_mae:,.0f}")
print(f"Network:       R² = {r2_model:.4f}, MAE = {mae_model:,.0f}")

print(f"\nSample predictions (first 5):")
print(f"{'True Price':>15} {'Pred Price':>15} {'Error':>15} {'Error %':>10}")
for i in range(min(5, len(y_test))):
    error = y_pred[i] - y_test[i]
    error_pct = (error / y_test[i]) * 100
    print(f"{y_test[i]:>15,.0f} {y_pred[i]:>15,.0f} {error:>15,.0f} {error_pct:>9.1f}%")

if mae_model > best_mae:
    print("\n⚠️  WARNING: Network is WORSE than a constant baseline!")
    print("   Train for more epochs or check the feature pipeline.")
else:
    improvement = ((best_mae - mae_model) / best_mae) * 100
    print(f"\n✓ Network beats baseline by {improvement:.1f}% MAE reduction")
