import argparse
import logging
import sys
from lotoevo.config import LOGS_DIR, DATA_FILE, EngineConfig, EVOLUTION_CONFIG, NEURAL_MODEL_PARAMS
from lotoevo.data import LotteryDataManager
from lotoevo.engine import EvolutionEngine
from lotoevo.persistence import CheckpointStore

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOGS_DIR / "evolution_engine.log"),
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

def main():
    parser = argparse.ArgumentParser(description="Evolutionary Lotofácil Prediction Engine")
    parser.add_argument("--data", default=str(DATA_FILE), help="Draw history CSV (concurso, date, 15 balls)")
    parser.add_argument("--players", type=int, default=EVOLUTION_CONFIG["population_size"], help="Population size")
    parser.add_argument("--rounds", type=int, default=None, help="Maximum rounds to play (default: all remaining draws)")
    parser.add_argument("--evolve-every", type=int, default=EVOLUTION_CONFIG["evolve_every"], help="Rounds between generation events")
    parser.add_argument("--train-split", type=float, default=0.5, help="Fraction of history used to train the model before playing")
    parser.add_argument("--force-train", action="store_true", help="Force retraining of the neural model")
    parser.add_argument("--epochs", type=int, default=None, help="Override training epochs")
    parser.add_argument("--workers", type=int, default=1, help="Threads used for prediction synthesis")
    parser.add_argument("--model-timeout", type=float, default=None, help="Deadline in seconds for each model inference call")
    parser.add_argument("--retrain-every", type=int, default=NEURAL_MODEL_PARAMS["retrain_every"], help="Rounds between in-play model updates (0 disables)")
    parser.add_argument("--device", choices=["auto", "cpu", "gpu"], default=NEURAL_MODEL_PARAMS["device"], help="TensorFlow device for the model")
    parser.add_argument("--base-weights", action="store_true", help="Seed players from the base weight table instead of random weights")
    parser.add_argument("--selection", action="store_true", help="Breed weights of the weaker half on each generation event")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--resume", default=None, help="Checkpoint file to resume from ('latest' for the newest)")
    parser.add_argument("--no-checkpoint", action="store_true", help="Do not save a checkpoint at the end")
    args = parser.parse_args()

    try:
        logger.info("=== Starting Evolutionary Prediction Engine ===")

        # 1. Load Data
        logger.info("Loading data...")
        data_manager = LotteryDataManager(args.data)
        data = data_manager.load_data()
        split = max(2, int(len(data) * args.train_split))
        if split >= len(data):
            raise ValueError(f"Train split leaves no draws to play ({len(data)} draws loaded).")

        # 2. Model (lazy import keeps TensorFlow out of the engine core)
        from lotoevo.neural import NeuralModel
        neural_model = NeuralModel(params={"device": args.device}).build_model()
        if args.force_train or not neural_model.models_loaded:
            train_config = {"epochs": args.epochs} if args.epochs else None
            neural_model.train(data.iloc[:split], train_config)
            neural_model.save()

        # 3. Engine
        config = EngineConfig(
            population_size=args.players,
            evolve_every=args.evolve_every,
            max_workers=args.workers,
            model_timeout=args.model_timeout,
            retrain_every=args.retrain_every,
            use_base_weights=args.base_weights,
            selection=args.selection,
            seed=args.seed
        )
        with EvolutionEngine(neural_model, config) as engine:
            store = CheckpointStore()
            if args.resume:
                handle = store.latest_checkpoint() if args.resume == "latest" else args.resume
                if handle is None:
                    raise FileNotFoundError("No checkpoint available to resume from.")
                engine.restore(store.load_checkpoint(handle))

            # 4. Play rounds
            start = split + engine.rounds_played
            logger.info(f"Playing from draw {start} with {len(engine.players)} players...")
            results = engine.run(data_manager.iter_contexts(data, start=start), max_rounds=args.rounds)

            # 5. Output Results
            aborted = [r.round_index for r in results if not r.completed]
            if aborted:
                logger.warning(f"Aborted rounds: {aborted}")

            print("\n".join(engine.report()))
            champion = engine.champion
            if champion is not None:
                print(f"\nChampion #{champion.id} latest prediction: {champion.predictions}")

            if not args.no_checkpoint:
                store.save_checkpoint(engine.snapshot())
            if any(r.retrained for r in results):
                neural_model.save()

        logger.info("=== Execution Complete ===")

    except Exception as e:
        logger.error(f"Fatal error: {str(e)}", exc_info=True)
        sys.exit(1)

if __name__ == "__main__":
    main()

# python3 main.py --data lottery_data/lotofacil.csv --force-train --epochs 30
# python3 main.py --resume latest --rounds 100 --workers 4 --selection
